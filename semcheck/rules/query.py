"""Read-only query helpers shared by catalog rules."""

from __future__ import annotations

from semcheck.identity import IdentityResolver, Side
from semcheck.rules.base import RuleMatch
from semcheck.snapshot import Item, Snapshot, SnapshotPair

TYPE_KINDS = ("struct", "enum", "union")


class PairView:
    """Snapshot pair plus identity resolver, as seen by a rule."""

    def __init__(self, pair: SnapshotPair, resolver: IdentityResolver | None = None) -> None:
        self.pair = pair
        self.baseline = pair.baseline
        self.current = pair.current
        self.resolver = resolver or IdentityResolver(pair)

    def snapshot(self, side: Side) -> Snapshot:
        return self.baseline if side == "baseline" else self.current

    def identity(self, item: Item, side: Side = "baseline") -> str:
        return self.resolver.identity(item, side)

    def is_importable(self, item: Item, side: Side) -> bool:
        return self.resolver.is_importable(item, side)

    def is_public_api(self, item: Item, side: Side) -> bool:
        return self.resolver.is_public_api(item, side)

    def _baseline_public(self, kinds: tuple[str, ...]) -> list[Item]:
        items = [
            self.baseline.item(item_id)
            for item_id in self.resolver.baseline.item_ids()
            if self.resolver.baseline.is_public_api(item_id)
        ]
        return [item for item in items if not kinds or item.kind in kinds]

    def matched(self, *kinds: str) -> list[tuple[Item, Item]]:
        """Pairs public API in the baseline whose counterpart is public API in current."""
        pairs: list[tuple[Item, Item]] = []
        for item in self._baseline_public(kinds):
            counterpart = self.resolver.counterpart(item)
            if counterpart is not None and self.is_public_api(counterpart, "current"):
                pairs.append((item, counterpart))
        return sorted(pairs, key=lambda pair: self.identity(pair[0]))

    def hidden(self, *kinds: str) -> list[tuple[Item, Item]]:
        """Pairs still importable in current, but only through hidden paths."""
        pairs: list[tuple[Item, Item]] = []
        for item in self._baseline_public(kinds):
            counterpart = self.resolver.counterpart(item)
            if counterpart is not None and not self.is_public_api(counterpart, "current"):
                pairs.append((item, counterpart))
        return sorted(pairs, key=lambda pair: self.identity(pair[0]))

    def removed(self, *kinds: str) -> list[Item]:
        """Baseline public-API items that no baseline path reaches in current."""
        items = [
            item for item in self._baseline_public(kinds) if self.resolver.counterpart(item) is None
        ]
        return sorted(items, key=self.identity)

    def match(
        self,
        message: str,
        *,
        baseline: Item | None = None,
        current: Item | None = None,
        item: str | None = None,
        facts: dict[str, str] | None = None,
    ) -> RuleMatch:
        if item is None:
            if baseline is not None:
                item = self.identity(baseline, "baseline")
            elif current is not None:
                item = self.identity(current, "current")
            else:
                raise ValueError("a match needs an item identity")
        span = None
        if current is not None and current.span is not None:
            span = current.span
        elif baseline is not None:
            span = baseline.span
        return RuleMatch(
            item=item,
            message=message,
            span=span,
            baseline_id=baseline.id if baseline is not None else None,
            current_id=current.id if current is not None else None,
            facts=dict(facts or {}),
        )

    # Members

    def members(self, side: Side, owner: Item, *kinds: str) -> list[Item]:
        return self.snapshot(side).children(owner, *kinds)

    def member_pairs(
        self, baseline_owner: Item, current_owner: Item, *kinds: str
    ) -> list[tuple[Item, Item | None]]:
        """Pair direct members by name; the current side is ``None`` when absent."""
        current_by_name = {
            member.name: member for member in self.members("current", current_owner, *kinds)
        }
        return [
            (member, current_by_name.get(member.name))
            for member in self.members("baseline", baseline_owner, *kinds)
        ]

    def inherent_members(self, side: Side, owner: Item, kind: str) -> list[Item]:
        snapshot = self.snapshot(side)
        members: list[Item] = []
        for impl in snapshot.inherent_impls(owner):
            members.extend(snapshot.children(impl, kind))
        return members

    def inherent_member_public_api(self, side: Side, member: Item) -> bool:
        impl = self.snapshot(side).parent(member)
        impl_hidden = impl is not None and impl.doc_hidden and not member.deprecated
        return member.public_api_eligible and not impl_hidden

    def inherent_member_pairs(
        self, baseline_owner: Item, current_owner: Item, kind: str
    ) -> list[tuple[Item, Item | None]]:
        """Baseline public-API inherent members paired with the best current match."""
        current_members: dict[str | None, Item] = {}
        for member in self.inherent_members("current", current_owner, kind):
            known = current_members.get(member.name)
            if known is None or (member.is_public and not known.is_public):
                current_members[member.name] = member
        pairs: list[tuple[Item, Item | None]] = []
        for member in self.inherent_members("baseline", baseline_owner, kind):
            if not self.inherent_member_public_api("baseline", member):
                continue
            pairs.append((member, current_members.get(member.name)))
        return pairs

    def trait_items(self, side: Side, trait: Item, kind: str) -> list[Item]:
        return self.snapshot(side).children(trait, kind)

    def member_identity(self, owner: Item, member: Item, side: Side = "baseline") -> str:
        return f"{self.identity(owner, side)}::{member.name}"

    def has_non_public_field(self, side: Side, owner: Item) -> bool:
        return any(
            not field.public_api_eligible
            for field in self.members(side, owner, "struct_field")
        )

    def trait_impl_names(self, side: Side, item: Item) -> set[str]:
        return self.snapshot(side).trait_impl_names(item)
