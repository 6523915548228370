from __future__ import annotations

from collections import defaultdict
from dataclasses import replace
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple, Union

from assetgen.core.canonical import hash_text
from assetgen.core.diagnostics import Diagnostic, IdentityConflictError, warning
from assetgen.core.model import FuncKind, PkgSpec, SpecCollection

SCHEMA_ID_LENGTH = 26

# Only generator-produced kinds can be overridden by hand; the asset function
# is always recompiled from the current props and sockets.
PRESERVED_KINDS = (FuncKind.ACTION, FuncKind.LEAF, FuncKind.MANAGEMENT)

PriorSpecs = Union[Mapping[str, PkgSpec], Iterable[PkgSpec]]


def update_schema_ids(
    existing: PriorSpecs,
    collection: SpecCollection,
    config: Optional[Dict[str, Any]] = None,
) -> SpecCollection:
    """Carry previously emitted schema ids onto freshly generated specs.

    Matching is exact on ``(type_name, variant)`` first, then structural for
    types that disappeared from the new collection. Anything unmatched gets a
    newly minted id. Raises ``IdentityConflictError`` rather than letting one
    id stand for two entities.
    """
    identity_cfg = (config or {}).get("identity", {}) or {}
    prior = _prior_list(existing)
    _check_prior(prior)

    diagnostics: List[Diagnostic] = []
    matches: Dict[str, PkgSpec] = {}

    by_key: Dict[Tuple[str, str], List[PkgSpec]] = defaultdict(list)
    for spec in prior:
        by_key[(spec.type_name, spec.variant)].append(spec)
    for spec in collection:
        candidates = [
            candidate
            for candidate in by_key.get((spec.type_name, spec.variant), [])
            if candidate.schema_id
        ]
        if len({candidate.schema_id for candidate in candidates}) > 1:
            raise _conflict(
                f"Previous specs for {spec.type_name} ({spec.variant}) carry different schema ids",
                spec.name,
            )
        if candidates:
            matches[spec.name] = candidates[0]

    if identity_cfg.get("fuzzy", True):
        threshold = float(identity_cfg.get("fuzzy_threshold", 0.8))
        fuzzy, fuzzy_diags = fuzzy_matches(collection, prior, matches, threshold)
        matches.update(fuzzy)
        diagnostics.extend(fuzzy_diags)

    used: Set[str] = {spec.schema_id for spec in prior if spec.schema_id}
    assigned: Dict[str, str] = {}
    specs: List[PkgSpec] = []
    for spec in collection:
        match = matches.get(spec.name)
        if match is not None:
            spec = preserve_user_funcs(replace(spec, schema_id=match.schema_id), match)
        else:
            schema_id = mint_schema_id(spec, used)
            used.add(schema_id)
            spec = replace(spec, schema_id=schema_id)
        owner = assigned.get(spec.schema_id)
        if owner is not None:
            raise _conflict(
                f"Schema id {spec.schema_id} would be shared by {owner} and {spec.name}",
                spec.name,
            )
        assigned[spec.schema_id] = spec.name
        specs.append(spec)
    return collection.evolve(specs, diagnostics)


def fuzzy_matches(
    collection: SpecCollection,
    prior: List[PkgSpec],
    exact: Mapping[str, PkgSpec],
    threshold: float,
) -> Tuple[Dict[str, PkgSpec], List[Diagnostic]]:
    """Pair renamed types with their previous specs by structure.

    A pair is accepted only when its score reaches ``threshold`` and each
    side is the other's single best candidate. Ties are reported and left
    unmatched so that a fresh id is minted instead of a guessed one.
    """
    present = {spec.type_name for spec in collection}
    claimed = {id(spec) for spec in exact.values()}
    orphans = [
        spec
        for spec in prior
        if spec.schema_id and spec.type_name not in present and id(spec) not in claimed
    ]
    pending = [spec for spec in collection if spec.name not in exact]
    if not orphans or not pending:
        return {}, []

    fingerprints = {id(spec): fingerprint(spec) for spec in orphans + pending}
    scores: Dict[Tuple[str, str], float] = {}
    for new in pending:
        for old in orphans:
            if new.is_sub_asset != old.is_sub_asset:
                continue
            score = similarity(fingerprints[id(new)], fingerprints[id(old)])
            if score >= threshold:
                scores[(new.name, old.name)] = score

    prior_by_name = {spec.name: spec for spec in orphans}
    matches: Dict[str, PkgSpec] = {}
    diagnostics: List[Diagnostic] = []
    for new in pending:
        best = _best({old: score for (name, old), score in scores.items() if name == new.name})
        if best is None:
            continue
        if len(best) > 1:
            message = f"Structural match for {new.name} is tied between {', '.join(sorted(best))}"
            diagnostics.append(warning("W-IDENTITY-FUZZY-TIE", message, spec=new.name))
            continue
        old_name = best[0]
        rivals = _best({name: score for (name, old), score in scores.items() if old == old_name})
        if rivals != [new.name]:
            message = f"Structural match for {old_name} is tied between {', '.join(sorted(rivals or []))}"
            diagnostics.append(warning("W-IDENTITY-FUZZY-TIE", message, spec=new.name))
            continue
        matches[new.name] = prior_by_name[old_name]
        diagnostics.append(
            warning(
                "W-IDENTITY-FUZZY",
                f"{new.name} inherits the schema id of renamed type {old_name}",
                spec=new.name,
            )
        )
    return matches, diagnostics


def fingerprint(spec: PkgSpec) -> FrozenSet[str]:
    return frozenset(
        "/".join(prop.path[2:]) + ":" + prop.kind.value for prop in spec.domain.walk() if len(prop.path) > 2
    )


def similarity(left: FrozenSet[str], right: FrozenSet[str]) -> float:
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


def mint_schema_id(spec: PkgSpec, used: Set[str]) -> str:
    attempt = 0
    while True:
        candidate = hash_text(spec.type_name, spec.variant, str(attempt))[:SCHEMA_ID_LENGTH]
        if candidate not in used:
            return candidate
        attempt += 1


def preserve_user_funcs(spec: PkgSpec, previous: PkgSpec) -> PkgSpec:
    user_funcs = [
        func for func in previous.funcs if not func.generated and func.kind in PRESERVED_KINDS
    ]
    if not user_funcs:
        return spec
    funcs = list(spec.funcs)
    for func in user_funcs:
        if any(existing.unique_id == func.unique_id for existing in funcs):
            continue
        for idx, existing in enumerate(funcs):
            if existing.slot == func.slot:
                funcs[idx] = func
                break
        else:
            funcs.append(func)
    return replace(spec, funcs=tuple(funcs))


def _best(scores: Mapping[str, float]) -> Optional[List[str]]:
    if not scores:
        return None
    top = max(scores.values())
    return sorted(name for name, score in scores.items() if score == top)


def _prior_list(existing: PriorSpecs) -> List[PkgSpec]:
    values = existing.values() if isinstance(existing, Mapping) else existing
    return sorted(values, key=lambda spec: spec.name)


def _check_prior(prior: List[PkgSpec]) -> None:
    owners: Dict[str, str] = {}
    for spec in prior:
        if not spec.schema_id:
            continue
        owner = owners.setdefault(spec.schema_id, spec.type_name)
        if owner != spec.type_name:
            raise _conflict(
                f"Previous specs {owner} and {spec.type_name} share schema id {spec.schema_id}",
                spec.name,
            )


def _conflict(message: str, spec_name: str) -> IdentityConflictError:
    return IdentityConflictError(
        Diagnostic(
            code="E-IDENTITY-CONFLICT",
            message=message,
            data={"spec": spec_name},
        )
    )
