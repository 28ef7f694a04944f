# ==============================================
# Models (Data Classes)
# ==============================================
#
# CLASSES:
# --------
# - WebFeed (dataclass)
#     A subscribed feed. The account keeps them in id_to_web_feed;
#     its keys are the set of ids whose metadata gets persisted.
#
# - WebFeedMetadata (dataclass)
#     See below.
#
# ==============================================
# WebFeedMetadata
# ==============================================
#
# PURPOSE:
#   Per-feed settings that outlive a single session: custom name,
#   icon URLs, conditional GET validators, notification switches.
#   One instance per subscribed feed, keyed by web_feed_id.
#
# DELEGATE:
#   `delegate` is a non-owning back-reference to the owning account.
#   It is attached after load, never serialized and ignored by ==.
#   Assigning a different value to a persisted field calls
#   delegate.value_did_change(metadata, field_name), which is how
#   the account learns it has to schedule a save.
#
#   conditional_get_info and folder_relationship are stored as
#   _ObservedDict copies bound to the record, so editing them in
#   place notifies the delegate too.
#
# SERIALIZED KEYS:
# ----------------
#   webFeedID, homePageURL, iconURL, faviconURL, editedName,
#   contentHash, isNotifyAboutNewArticles, isArticleExtractorAlwaysOn,
#   externalID, sinceToken, conditionalGetInfo, folderRelationship
#
#   Unset (None) fields are omitted; unknown keys are ignored on load.
#
# ==============================================

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

_SERIALIZED_KEYS = {
    "web_feed_id": "webFeedID",
    "home_page_url": "homePageURL",
    "icon_url": "iconURL",
    "favicon_url": "faviconURL",
    "edited_name": "editedName",
    "content_hash": "contentHash",
    "is_notify_about_new_articles": "isNotifyAboutNewArticles",
    "is_article_extractor_always_on": "isArticleExtractorAlwaysOn",
    "external_id": "externalID",
    "since_token": "sinceToken",
    "conditional_get_info": "conditionalGetInfo",
    "folder_relationship": "folderRelationship",
}

_MISSING = object()

_DICT_FIELDS = frozenset({"conditional_get_info", "folder_relationship"})


class _ObservedDict(dict):
    """dict that reports in-place edits to the WebFeedMetadata owning it."""

    def __init__(self, owner: "WebFeedMetadata", name: str, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._owner = owner
        self._name = name

    def _changed(self) -> None:
        self._owner._notify_delegate(self._name)

    def __setitem__(self, key, value):
        unchanged = key in self and self[key] == value
        super().__setitem__(key, value)
        if not unchanged:
            self._changed()

    def __delitem__(self, key):
        super().__delitem__(key)
        self._changed()

    def __ior__(self, other):
        self.update(other)
        return self

    def update(self, *args, **kwargs):
        before = dict(self)
        super().update(*args, **kwargs)
        if self != before:
            self._changed()

    def setdefault(self, key, default=None):
        if key in self:
            return self[key]
        value = super().setdefault(key, default)
        self._changed()
        return value

    def pop(self, key, *default):
        if key not in self:
            return super().pop(key, *default)
        value = super().pop(key)
        self._changed()
        return value

    def popitem(self):
        item = super().popitem()
        self._changed()
        return item

    def clear(self):
        if self:
            super().clear()
            self._changed()


@dataclass
class WebFeed:
    """A feed the account is subscribed to."""
    web_feed_id: str
    url: str
    name: Optional[str] = None


@dataclass
class WebFeedMetadata:
    """Persisted settings for one feed."""

    web_feed_id: str

    home_page_url: Optional[str] = None
    icon_url: Optional[str] = None
    favicon_url: Optional[str] = None
    edited_name: Optional[str] = None
    content_hash: Optional[str] = None
    is_notify_about_new_articles: Optional[bool] = None
    is_article_extractor_always_on: Optional[bool] = None
    external_id: Optional[str] = None
    since_token: Optional[str] = None
    conditional_get_info: Optional[Dict[str, str]] = None  # ETag / Last-Modified
    folder_relationship: Optional[Dict[str, str]] = None

    delegate: Any = field(default=None, repr=False, compare=False)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in _DICT_FIELDS and value is not None:
            value = _ObservedDict(self, name, value)

        old_value = self.__dict__.get(name, _MISSING)
        object.__setattr__(self, name, value)

        if name not in _SERIALIZED_KEYS or old_value is _MISSING or old_value == value:
            return
        self._notify_delegate(name)

    def _notify_delegate(self, name: str) -> None:
        delegate = self.__dict__.get("delegate")
        if delegate is not None:
            delegate.value_did_change(self, name)

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize to a plist-safe dictionary.

        Returns:
            Dictionary keyed by serialized names, without unset fields
        """
        data = {}
        for attr, key in _SERIALIZED_KEYS.items():
            value = getattr(self, attr)
            if value is None:
                continue
            data[key] = dict(value) if isinstance(value, dict) else value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], web_feed_id: Optional[str] = None) -> "WebFeedMetadata":
        """
        Reconstruct from a stored dictionary.

        Args:
            data: Stored record; unknown keys are ignored
            web_feed_id: Fallback id (the mapping key) when the record lacks one

        Returns:
            WebFeedMetadata without a delegate
        """
        kwargs = {}
        for attr, key in _SERIALIZED_KEYS.items():
            if key in data:
                kwargs[attr] = data[key]

        if not kwargs.get("web_feed_id"):
            if web_feed_id is None:
                raise ValueError("record has no webFeedID")
            kwargs["web_feed_id"] = web_feed_id

        return cls(**kwargs)
