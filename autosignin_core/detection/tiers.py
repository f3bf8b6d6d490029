"""
Detection tiers.

Every tier implements the same interface:

- `find_field(context, field, url, configs, exclude)` returns the first
  usable element for one field and the selector that matched it;
- `candidate(context, url, configs, fields, exclude)` resolves several
  fields (password, username, domain, submit) without reusing an element.

A context is anything with `query_selector_all`: the page, a child frame or
a shadow host element.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .. import driver
from ..models import DetectionMethod, FormElements
from ..page_configs import ConfigurationSet
from .selectors import COMMON_SELECTORS, structural_selectors

logger = logging.getLogger(__name__)

RESOLUTION_ORDER = ("password", "username", "domain", "submit")


class DetectionTier:
    """Base tier: selector-list search in one context."""

    method: DetectionMethod = None
    name = "tier"

    def selectors_for(self, field_name: str, url: str, configs: ConfigurationSet) -> List[str]:
        raise NotImplementedError

    async def find_field(
        self,
        context,
        field_name: str,
        url: str,
        configs: ConfigurationSet,
        exclude: Iterable[Any] = (),
    ) -> Tuple[Optional[Any], Optional[str]]:
        selectors = self.selectors_for(field_name, url, configs)
        if not selectors:
            return None, None
        return await driver.first_usable(context, selectors, exclude)

    async def candidate(
        self,
        context,
        url: str,
        configs: ConfigurationSet,
        fields: Sequence[str],
        exclude: Iterable[Any] = (),
    ) -> FormElements:
        result = FormElements(method=self.method)
        taken = [e for e in exclude if e is not None]
        for name in RESOLUTION_ORDER:
            if name not in fields:
                continue
            element, selector = await self.find_field(context, name, url, configs, taken)
            if element is not None:
                result.set(name, element, self.method, selector)
                taken.append(element)
        return result

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.method.value}>"


class UrlConfigTier(DetectionTier):
    """Tier 1: selectors from configurations matching the URL, highest priority first."""

    method = DetectionMethod.URL_SPECIFIC
    name = "url_specific"

    def selectors_for(self, field_name, url, configs):
        return configs.selectors_for(url, field_name)


class CommonAttributeTier(DetectionTier):
    """Tier 2: generic name/id/placeholder/aria-label heuristics."""

    method = DetectionMethod.COMMON_ATTRIBUTES
    name = "common_attributes"

    def selectors_for(self, field_name, url, configs):
        return COMMON_SELECTORS.get(field_name, [])


class StructuralTier(DetectionTier):
    """Tier 3: label proximity and attribute-translation XPath."""

    method = DetectionMethod.STRUCTURAL
    name = "structural"

    def __init__(self):
        self._cache: Dict[str, List[str]] = {}

    def selectors_for(self, field_name, url, configs):
        if field_name not in self._cache:
            self._cache[field_name] = structural_selectors(field_name)
        return self._cache[field_name]


class NestedContextTier(DetectionTier):
    """
    Tier 4: re-run the flat tiers inside child frames (bounded depth), open
    shadow roots and popup windows opened from the login page.

    A form is taken from a single context; fields are never stitched
    together across frames or windows.
    """

    method = DetectionMethod.NESTED_CONTEXT
    name = "nested_context"

    def __init__(self, inner_tiers: Sequence[DetectionTier], max_depth: int = 3):
        self.inner_tiers = list(inner_tiers)
        self.max_depth = max_depth

    def selectors_for(self, field_name, url, configs):
        return []

    async def _walk(self, page) -> List[Tuple[Any, Any]]:
        """(context, popup window owning it or None), breadth-first per window."""
        found: List[Tuple[Any, Any]] = []

        async def walk(frames, depth, owner):
            if depth > self.max_depth:
                return
            for frame in frames:
                found.append((frame, owner))
                found.extend((host, owner) for host in await driver.shadow_hosts(frame))
                try:
                    children = list(frame.child_frames or [])
                except AttributeError:
                    children = []
                await walk(children, depth + 1, owner)

        found.extend((host, None) for host in await driver.shadow_hosts(page))
        if self.max_depth > 0:
            await walk(await driver.child_frames(page), 1, None)

        for popup in await driver.popup_pages(page):
            found.append((popup, popup))
            found.extend((host, popup) for host in await driver.shadow_hosts(popup))
            if self.max_depth > 0:
                await walk(await driver.child_frames(popup), 1, popup)
        return found

    async def contexts(self, page) -> List[Any]:
        return [context for context, _ in await self._walk(page)]

    async def find_field(self, context, field_name, url, configs, exclude=()):
        for nested in await self.contexts(context):
            for tier in self.inner_tiers:
                element, selector = await tier.find_field(nested, field_name, url, configs, exclude)
                if element is not None:
                    return element, selector
        return None, None

    async def candidate(self, context, url, configs, fields, exclude=()):
        best = FormElements(method=self.method)
        contexts = await self._walk(context)
        logger.debug(f"Nested detection over {len(contexts)} contexts")
        for nested, popup in contexts:
            result = FormElements(method=self.method, popup=popup)
            for tier in self.inner_tiers:
                taken = list(exclude) + result.elements()
                partial = await tier.candidate(nested, url, configs, fields, taken)
                result.merge_missing(partial)
                if result.is_valid:
                    break
            for name in result.found_fields():
                result.field_methods[name] = self.method
            if result.is_valid:
                return result
            if len(result.found_fields()) > len(best.found_fields()):
                best = result
        return best


def default_tiers(max_frame_depth: int = 3) -> List[DetectionTier]:
    flat = [UrlConfigTier(), CommonAttributeTier(), StructuralTier()]
    return flat + [NestedContextTier(flat, max_depth=max_frame_depth)]
