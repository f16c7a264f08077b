"""Models for generated video scripts."""

from dataclasses import dataclass, field


@dataclass
class ScriptScene:
    """A single planned scene produced by the script generator."""

    scene_number: int
    description: str
    narration: str
    duration: int

    def to_dict(self) -> dict:
        """Convert to dictionary for storage and API responses."""
        return {
            "scene_number": self.scene_number,
            "description": self.description,
            "narration": self.narration,
            "duration": self.duration,
        }


@dataclass
class Script:
    """Title plus ordered scenes; stored on the project as an opaque blob."""

    title: str
    scenes: list[ScriptScene] = field(default_factory=list)

    @property
    def total_duration(self) -> int:
        return sum(s.duration for s in self.scenes)

    def to_dict(self) -> dict:
        """Convert to dictionary for storage and API responses."""
        return {
            "title": self.title,
            "scenes": [s.to_dict() for s in self.scenes],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Script":
        """Rebuild a Script from its stored dictionary form."""
        return cls(
            title=data.get("title", ""),
            scenes=[
                ScriptScene(
                    scene_number=int(s["scene_number"]),
                    description=s.get("description", ""),
                    narration=s.get("narration", ""),
                    duration=int(s["duration"]),
                )
                for s in data.get("scenes", [])
            ],
        )
