"""Video generation pipeline.

Turns a prompt into a rendered video:
1. Check the caller's credits
2. Generate a timed multi-scene script
3. Generate one image and one narration clip per scene
4. Persist the project and its scenes
5. Submit the scenes to a render backend and poll for the final video
"""

from video_pipeline.controller import PipelineController, PipelineRun
from video_pipeline.render_orchestrator import RenderOrchestrator
from video_pipeline.scene_media import SceneMediaGenerator
from video_pipeline.script_generator import ScriptGenerator, plan_scene_durations

__all__ = [
    "PipelineController",
    "PipelineRun",
    "RenderOrchestrator",
    "SceneMediaGenerator",
    "ScriptGenerator",
    "plan_scene_durations",
]
