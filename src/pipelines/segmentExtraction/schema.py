import uuid
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, RootModel
from pydantic.alias_generators import to_camel


class SegmentBaseModel(BaseModel):
    """Shared config: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class CastMember(SegmentBaseModel):
    character_name: str = ""
    actor_name: str = ""


class TimeSpan(SegmentBaseModel):
    """A (start, end) window of the media, both in HH:MM:SS."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    start: str
    end: str


class MediaSummary(SegmentBaseModel):
    title: str = ""
    summary: str = ""
    cast: List[CastMember] = Field(default_factory=list)
    category: str = ""
    director: str = ""
    release_year: int = 0
    genre: str = ""
    rating: str = ""
    media_url: str = ""
    length_in_seconds: int = 0
    segment_time_stamps: List[TimeSpan] = Field(default_factory=list)


class MediaObject(SegmentBaseModel):
    """Reference to the media asset handed to inference."""

    bucket: str
    name: str
    mime_type: str = "video/mp4"

    @property
    def uri(self) -> str:
        return f"gs://{self.bucket}/{self.name}"

    @classmethod
    def from_uri(cls, uri: str, mime_type: str = "video/mp4") -> "MediaObject":
        if not uri or not uri.startswith("gs://"):
            raise ValueError(f"Expected a gs:// URI, got: {uri}")
        bucket, _, name = uri[len("gs://"):].partition("/")
        if not bucket or not name:
            raise ValueError(f"URI must name a bucket and an object: {uri}")
        return cls(bucket=bucket, name=name, mime_type=mime_type)


class Segment(SegmentBaseModel):
    sequence_number: int = 0
    start: str = Field(description="Start of the segment in HH:MM:SS")
    end: str = Field(description="End of the segment in HH:MM:SS")
    script: str = Field(description="Script or transcript spoken or shown in the segment")


class Segments(RootModel[List[Segment]]):
    pass


class Media(SegmentBaseModel):
    id: str
    title: str = ""
    category: str = ""
    summary: str = ""
    media_url: str = ""
    length_in_seconds: int = 0
    director: str = ""
    release_year: int = 0
    genre: str = ""
    rating: str = ""
    cast: List[CastMember] = Field(default_factory=list)
    segments: List[Segment] = Field(default_factory=list)

    @classmethod
    def create(cls, title: str, media_id: Optional[str] = None) -> "Media":
        return cls(id=media_id or str(uuid.uuid4()), title=title)


def get_example_segment() -> Segment:
    return Segment(
        sequence_number=0,
        start="00:00:00",
        end="00:00:20",
        script="NARRATOR: The city wakes up as the first train pulls into the station.",
    )
