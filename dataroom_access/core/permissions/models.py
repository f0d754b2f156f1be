"""Permission state models and wire records"""

from enum import Enum
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ItemType(str, Enum):
    """Kinds of items in a dataroom tree"""

    DATAROOM_FOLDER = "DATAROOM_FOLDER"
    DATAROOM_DOCUMENT = "DATAROOM_DOCUMENT"


class PermissionState(BaseModel):
    """Access state of one item for a viewer group.

    ``download`` implies ``view``. ``partial_view`` is a derived hint for
    folders whose children are not uniformly viewable.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    view: bool = False
    partial_view: bool = Field(default=False, alias="partialView")
    download: bool = False

    @model_validator(mode="after")
    def check_download_implies_view(self) -> "PermissionState":
        if self.download and not self.view:
            raise ValueError("download permission requires view permission")
        return self

    def persisted(self) -> Dict[str, bool]:
        """The part of the state that is stored by the backend"""
        return {"view": self.view, "download": self.download}

    def to_dict(self) -> Dict[str, bool]:
        return {
            "view": self.view,
            "partialView": self.partial_view,
            "download": self.download,
        }


class RequestedFlags(BaseModel):
    """View/download pair requested by a toggle action"""

    model_config = ConfigDict(frozen=True)

    view: bool = False
    download: bool = False

    @classmethod
    def from_toggles(cls, toggles: Iterable[str]) -> "RequestedFlags":
        """Build flags from the set of active toggle values"""
        values = set(toggles)
        unknown = values - {"view", "download"}
        if unknown:
            raise ValueError(f"Unknown permission toggles: {sorted(unknown)}")
        return cls(view="view" in values, download="download" in values)


class PermissionOverride(BaseModel):
    """Explicit access-control entry for one item"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    item_id: str = Field(..., alias="itemId")
    can_view: bool = Field(default=False, alias="canView")
    can_download: bool = Field(default=False, alias="canDownload")


class DocumentRef(BaseModel):
    """The underlying document a dataroom item points to"""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str


class NestedDocumentRecord(BaseModel):
    """Document entry nested in a folder record's ``documents`` array"""

    model_config = ConfigDict(extra="ignore")

    id: str
    document: Optional[DocumentRef] = None


class SourceRecord(BaseModel):
    """One folder or document record from the dataroom tree source"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    name: Optional[str] = None
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    folder_id: Optional[str] = Field(default=None, alias="folderId")
    document: Optional[DocumentRef] = None
    documents: List[NestedDocumentRecord] = Field(default_factory=list)

    @property
    def is_document(self) -> bool:
        return self.document is not None

    @property
    def effective_parent_id(self) -> Optional[str]:
        if self.parent_id is not None:
            return self.parent_id
        if self.is_document:
            return self.folder_id
        return None


class DiffEntry(BaseModel):
    """State change of a single item caused by one edit"""

    model_config = ConfigDict(frozen=True)

    item_id: str
    item_type: ItemType
    before: PermissionState
    after: PermissionState

    @property
    def view(self) -> bool:
        return self.after.view

    @property
    def download(self) -> bool:
        return self.after.download

    @property
    def partial_view(self) -> bool:
        return self.after.partial_view

    @property
    def persisted_changed(self) -> bool:
        return self.before.persisted() != self.after.persisted()


class PermissionDiff(BaseModel):
    """Ordered set of per-item changes produced by one edit"""

    model_config = ConfigDict(frozen=True)

    entries: Dict[str, DiffEntry] = Field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries.values())

    def __contains__(self, item_id: object) -> bool:
        return item_id in self.entries

    def __getitem__(self, item_id: str) -> DiffEntry:
        return self.entries[item_id]

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def item_ids(self) -> List[str]:
        return list(self.entries)


class PendingChange(BaseModel):
    """Latest persisted state queued for one item"""

    model_config = ConfigDict(frozen=True)

    item_id: str
    view: bool
    download: bool
    item_type: ItemType

    def to_payload(self) -> Dict[str, object]:
        return {
            "view": self.view,
            "download": self.download,
            "itemType": self.item_type.value,
        }
