"""
Data model for the aggregated registry view
"""

from dataclasses import dataclass, field, asdict
from typing import List, Optional, Dict, Any


LEVEL_DANGER = 'danger'
LEVEL_INFO = 'info'

# Tags always shown first, ahead of the date-ranked ones
PINNED_TAGS = ('latest',)


@dataclass
class Provenance:
    """Build metadata recorded as labels on an image's configuration"""
    commit_author: str = ''
    commit_date: str = ''
    commit_sha: str = ''
    ref: str = ''
    source_location: str = ''
    message: str = ''
    base_image: str = ''
    env: List[str] = field(default_factory=list)

    def env_value(self, name: str) -> str:
        """
        Look up a variable in the build environment

        Args:
            name: Variable name (e.g., "PATH")

        Returns:
            The value after ``NAME=``, or an empty string when not set
        """
        prefix = f"{name}="
        for entry in self.env:
            if entry.startswith(prefix):
                return entry[len(prefix):]
        return ''

    @property
    def short_sha(self) -> str:
        return self.commit_sha[:8]

    def is_empty(self) -> bool:
        return not any((
            self.commit_author, self.commit_date, self.commit_sha, self.ref,
            self.source_location, self.message, self.base_image, self.env,
        ))


@dataclass
class ResolvedTag:
    """A tag together with its provenance and content digest"""
    name: str
    provenance: Provenance = field(default_factory=Provenance)
    digest: Optional[str] = None

    @property
    def is_pinned(self) -> bool:
        return self.name in PINNED_TAGS

    def __repr__(self) -> str:
        return f"ResolvedTag(name='{self.name}', digest='{self.digest or 'unknown'}')"


@dataclass
class AggregatedImage:
    """A repository and its ranked tags"""
    name: str
    tags: List[ResolvedTag] = field(default_factory=list)

    @property
    def tag_names(self) -> List[str]:
        return [t.name for t in self.tags]


@dataclass
class Message:
    """A user-visible note about something that went wrong"""
    level: str
    text: str


@dataclass
class AggregationResult:
    """
    Everything handed to a renderer for one request

    Images are kept in the order their repository workers finished, not in
    catalog order.
    """
    registry: str
    images: List[AggregatedImage] = field(default_factory=list)
    messages: List[Message] = field(default_factory=list)

    def image(self, name: str) -> Optional[AggregatedImage]:
        for image in self.images:
            if image.name == name:
                return image
        return None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
