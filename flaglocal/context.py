"""
This submodule defines the :class:`EvaluationContext` class.
"""

from typing import Any, Dict, Mapping, Optional


class EvaluationContext:
    """
    Everything a flag check is evaluated against: who is asking, which groups they belong to,
    and whatever person or group properties the caller knows.

    Contexts are supplied per call and never stored by the SDK.
    """

    __slots__ = ['_distinct_id', '_groups', '_person_properties', '_group_properties']

    def __init__(
        self,
        distinct_id: str,
        groups: Optional[Mapping[str, str]] = None,
        person_properties: Optional[Mapping[str, Any]] = None,
        group_properties: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ):
        """
        :param distinct_id: the identifier of the person the flag is evaluated for; required
        :param groups: group key per group type, e.g. ``{"company": "acme"}``
        :param person_properties: known person properties
        :param group_properties: known properties per group type
        """
        self._distinct_id = distinct_id
        self._groups = dict(groups or {})
        self._person_properties = dict(person_properties or {})
        self._group_properties = {k: dict(v or {}) for k, v in (group_properties or {}).items()}

    @property
    def distinct_id(self) -> str:
        return self._distinct_id

    @property
    def groups(self) -> Dict[str, str]:
        return self._groups

    @property
    def person_properties(self) -> Dict[str, Any]:
        return self._person_properties

    @property
    def group_properties(self) -> Dict[str, Dict[str, Any]]:
        return self._group_properties

    def properties_for_group(self, group_name: str) -> Dict[str, Any]:
        return self._group_properties.get(group_name, {})

    @property
    def valid(self) -> bool:
        """
        True if the context has a non-empty string distinct id. Flags are never evaluated for an
        invalid context.
        """
        return isinstance(self._distinct_id, str) and self._distinct_id != ''

    def __repr__(self) -> str:
        return 'EvaluationContext(distinct_id=%r, groups=%r)' % (self._distinct_id, self._groups)
