from collections import deque
from typing import (Dict, Iterable, List, NamedTuple, Optional, Sequence,
                    Set)

from flaglocal.errors import CyclicDependencyError
from flaglocal.impl.model.feature_flag import FeatureFlag
from flaglocal.impl.util import log
from flaglocal.interfaces import FlagValue


class DependencyGraph:
    """
    A directed graph of "flag X has a condition on flag Y's result" relationships, keyed by flag key.

    The graph keeps both directions of every edge, so removing a flag deletes it from the adjacency
    maps on each side and no edge is ever left pointing at a flag that is no longer in the graph.

    The graph also holds an evaluation cache of flag key to computed value. A cache belongs to one
    evaluation pass (one context); :func:`filter_by_keys()` returns a graph with an empty cache, which
    is how each pass gets its own.
    """

    def __init__(self):
        # dict keys rather than a set so that iteration follows insertion order
        self.__flags: Dict[str, None] = {}
        self.__dependencies: Dict[str, Set[str]] = {}
        self.__dependents: Dict[str, Set[str]] = {}
        self.__evaluation_cache: Dict[str, FlagValue] = {}

    def add_flag(self, flag_key: str):
        if flag_key in self.__flags:
            return
        self.__flags[flag_key] = None
        self.__dependencies[flag_key] = set()
        self.__dependents[flag_key] = set()

    def add_dependency(self, flag_key: str, dependency_key: str):
        """Records that ``flag_key`` depends on ``dependency_key``, registering either key if needed."""
        self.add_flag(flag_key)
        self.add_flag(dependency_key)
        self.__dependencies[flag_key].add(dependency_key)
        self.__dependents[dependency_key].add(flag_key)

    def has_flag(self, flag_key: str) -> bool:
        return flag_key in self.__flags

    @property
    def flags(self) -> List[str]:
        return list(self.__flags)

    def __len__(self) -> int:
        return len(self.__flags)

    def __contains__(self, flag_key) -> bool:
        return flag_key in self.__flags

    def get_dependencies(self, flag_key: str) -> Set[str]:
        return set(self.__dependencies.get(flag_key, ()))

    def get_dependents(self, flag_key: str) -> Set[str]:
        return set(self.__dependents.get(flag_key, ()))

    def remove_flag(self, flag_key: str):
        """Removes a flag, every edge into or out of it, and any cached result for it."""
        if flag_key not in self.__flags:
            return
        del self.__flags[flag_key]

        for dependency in self.__dependencies.pop(flag_key, set()):
            if dependency in self.__dependents:
                self.__dependents[dependency].discard(flag_key)

        for dependent in self.__dependents.pop(flag_key, set()):
            if dependent in self.__dependencies:
                self.__dependencies[dependent].discard(flag_key)

        self.__evaluation_cache.pop(flag_key, None)

    def detect_cycles(self) -> Set[str]:
        """
        Returns every flag that can reach itself by following dependencies, which is every flag on
        every cycle. All cycles are found in a single depth-first pass.
        """
        # Iterative Tarjan: a flag is on a cycle exactly when its strongly connected component has more
        # than one member, or it depends on itself.
        index: Dict[str, int] = {}
        lowlink: Dict[str, int] = {}
        stack: List[str] = []
        on_stack: Set[str] = set()
        cycle_flags: Set[str] = set()

        def visit(flag_key: str):
            index[flag_key] = lowlink[flag_key] = len(index)
            stack.append(flag_key)
            on_stack.add(flag_key)

        for root in self.__flags:
            if root in index:
                continue
            visit(root)
            work = [(root, iter(self.__dependencies[root]))]
            while work:
                flag_key, dependencies = work[-1]
                descended = False
                for dependency in dependencies:
                    if dependency not in index:
                        visit(dependency)
                        work.append((dependency, iter(self.__dependencies[dependency])))
                        descended = True
                        break
                    if dependency in on_stack:
                        lowlink[flag_key] = min(lowlink[flag_key], index[dependency])
                if descended:
                    continue

                work.pop()
                if work:
                    parent = work[-1][0]
                    lowlink[parent] = min(lowlink[parent], lowlink[flag_key])
                if lowlink[flag_key] == index[flag_key]:
                    component = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == flag_key:
                            break
                    if len(component) > 1 or flag_key in self.__dependencies[flag_key]:
                        cycle_flags.update(component)

        return cycle_flags

    def remove_cycles(self) -> Set[str]:
        """
        Removes every flag involved in a cycle, in its entirety, and returns the removed keys.
        Flags that depended on a removed flag stay in the graph without that edge.
        """
        cycle_flags = self.detect_cycles()
        for flag_key in cycle_flags:
            self.remove_flag(flag_key)
        return cycle_flags

    def topological_sort(self) -> List[str]:
        """
        Returns the flags ordered so that every flag comes after all of its dependencies.

        :raises CyclicDependencyError: if the graph contains a cycle
        """
        in_degree = {flag_key: len(self.__dependencies[flag_key]) for flag_key in self.__flags}
        queue = deque(flag_key for flag_key, degree in in_degree.items() if degree == 0)
        result = []

        while queue:
            flag_key = queue.popleft()
            result.append(flag_key)
            for dependent in self.__dependents[flag_key]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        if len(result) != len(self.__flags):
            sorted_flags = set(result)
            remaining = [flag_key for flag_key in self.__flags if flag_key not in sorted_flags]
            raise CyclicDependencyError(remaining[0])

        return result

    def filter_by_keys(self, requested_keys: Iterable[str]) -> 'DependencyGraph':
        """
        Returns a new graph holding the requested flags plus everything they transitively depend on,
        with the dependency edges between them. Requested keys that are not in this graph are ignored.
        """
        filtered = DependencyGraph()
        required: Dict[str, None] = {}
        queue = deque()
        for flag_key in requested_keys:
            if flag_key in self.__flags and flag_key not in required:
                required[flag_key] = None
                queue.append(flag_key)

        while queue:
            flag_key = queue.popleft()
            for dependency in self.__dependencies[flag_key]:
                if dependency not in required:
                    required[dependency] = None
                    queue.append(dependency)

        for flag_key in required:
            filtered.add_flag(flag_key)
            for dependency in self.__dependencies[flag_key]:
                filtered.add_dependency(flag_key, dependency)

        return filtered

    def cache_result(self, flag_key: str, result: FlagValue):
        self.__evaluation_cache[flag_key] = result

    def get_cached_result(self, flag_key: str) -> Optional[FlagValue]:
        return self.__evaluation_cache.get(flag_key)

    def has_cached_result(self, flag_key: str) -> bool:
        return flag_key in self.__evaluation_cache

    def clear_cache(self):
        self.__evaluation_cache.clear()


class DependencyGraphBuild(NamedTuple):
    graph: DependencyGraph
    id_to_key: Dict[str, str]
    removed_flags: Set[str]


def build_dependency_graph(flags: Sequence[FeatureFlag]) -> DependencyGraphBuild:
    """
    Builds the dependency graph for a set of flag definitions and removes any flags that take part
    in a cycle.

    Flag filters refer to other flags by id. References to ids that are not in ``flags`` are
    skipped; such a condition simply cannot be satisfied at evaluation time.
    """
    graph = DependencyGraph()
    id_to_key: Dict[str, str] = {}

    for flag in flags:
        graph.add_flag(flag.key)
        if flag.id is not None:
            id_to_key[flag.id] = flag.key

    for flag in flags:
        for dependency_id in flag.flag_dependency_ids():
            dependency_key = id_to_key.get(dependency_id)
            if dependency_key is not None:
                graph.add_dependency(flag.key, dependency_key)
            else:
                log.debug("Flag '%s' depends on unknown flag id '%s'; ignoring the dependency" % (flag.key, dependency_id))

    removed_flags = graph.remove_cycles()
    if removed_flags:
        log.warning("Disabled flags with cyclic dependencies: %s" % ', '.join(sorted(removed_flags)))

    return DependencyGraphBuild(graph, id_to_key, removed_flags)


def match_flag_dependency(filter_value: FlagValue, flag_result: FlagValue) -> bool:
    """
    Compares a flag's evaluated value with the value a flag filter expects:

    - ``True`` matches any enabled result, that is anything other than exactly ``False`` (so a
      multivariate result matches)
    - ``False`` matches only ``False``
    - a string matches only that exact variant
    """
    if filter_value is True:
        return flag_result is not False
    if filter_value is False:
        return flag_result is False
    return flag_result == filter_value
