"""
Practice Squad (Taxi) Eligibility

Tracks, per (player, franchise), whether a player has been fielded since the
franchise last acquired them. Once fielded in a played game the player is
Activated and no longer eligible for the taxi squad until a new acquisition.

States:
    DORMANT    released; nothing tracked until the next acquisition
    TRACKING   acquired, not yet fielded
    PENDING    slotted as a starter for the current, unresolved week
    ACTIVATED  fielded in a played game (terminal for this tenure)

Fielded means a starter, or a reserve (IR) slot that still occupies an active
roster spot. Bench never activates. Without an authoritative lineup snapshot
only starters are trusted, since weekly player lists can leak taxi entries.

Usage:
    statuses = compute_eligibility(events, lineups, owner_id, current_week=(2025, 6))
    report = build_eligibility_report(owner_id, 2025, roster, statuses, players, limits)
    if not report.compliant:
        for v in report.violations:
            print(v.code, v.players)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

from league_history.config import TaxiLimits
from league_history.league.models import (
    Acquisition,
    Gap,
    Release,
    RosterEvent,
    RosterSnapshot,
    WeeklyLineup,
)
from league_history.league.roster_timeline import (
    OwnershipState,
    PlayerTenure,
    apply_acquisition,
    apply_release,
)

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
VALID_INTAKE = ("free_agent", "waiver", "trade")


class EligibilityState(str, Enum):
    DORMANT = "dormant"
    TRACKING = "tracking"
    PENDING = "pending"
    ACTIVATED = "activated"


@dataclass
class EligibilityStatus:
    """Eligibility of one player for one franchise."""
    player: str
    owner_id: str
    state: EligibilityState = EligibilityState.TRACKING
    acquisition: Optional[Acquisition] = None
    activated_at: Optional[Tuple[int, int]] = None
    activation_reason: Optional[str] = None  # 'lineup' | 'ir'
    pending_at: Optional[Tuple[int, int]] = None

    @property
    def activated(self) -> bool:
        return self.state is EligibilityState.ACTIVATED

    @property
    def pending_activation(self) -> bool:
        return self.state is EligibilityState.PENDING


@dataclass(frozen=True)
class ActivationWindow:
    """Days (in a timezone) during which an unresolved start counts as pending."""
    days: Tuple[str, ...] = ("Thu", "Fri", "Sat", "Sun", "Mon")
    timezone: str = "America/New_York"

    def is_open(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        local = now.astimezone(ZoneInfo(self.timezone))
        return WEEKDAY_NAMES[local.weekday()] in self.days


# =============================================================================
# STATE MACHINE
# =============================================================================

def _fielded(lineup: WeeklyLineup) -> Dict[str, str]:
    """player -> reason for everyone whose slot consumes an active roster spot."""
    out = {p: "lineup" for p in lineup.starters}
    if lineup.from_snapshot:
        for p in lineup.reserve:
            out[p] = "ir"
    return out


def _tenure(status: Optional[EligibilityStatus], player: str) -> PlayerTenure:
    if status is None or status.acquisition is None:
        return PlayerTenure(player=player)
    return PlayerTenure(player=player, state=OwnershipState.HELD, acquisition=status.acquisition)


def _on_acquisition(status: Optional[EligibilityStatus], event: Acquisition) -> EligibilityStatus:
    tenure = apply_acquisition(_tenure(status, event.player), event)
    if status is not None and tenure.acquisition is status.acquisition:
        return status
    # A new acquisition voids everything tracked before it
    return EligibilityStatus(player=event.player, owner_id=event.owner_id, acquisition=tenure.acquisition)


def _on_release(status: EligibilityStatus, event: Release) -> EligibilityStatus:
    if status.acquisition is None or apply_release(_tenure(status, event.player), event).held:
        return status
    return EligibilityStatus(player=event.player, owner_id=event.owner_id, state=EligibilityState.DORMANT)


def _on_lineup(
    status: EligibilityStatus,
    lineup: WeeklyLineup,
    reason: str,
    pending_open: bool,
) -> None:
    if status.state in (EligibilityState.DORMANT, EligibilityState.ACTIVATED):
        return
    if lineup.played:
        status.state = EligibilityState.ACTIVATED
        status.activated_at = (lineup.season, lineup.week)
        status.activation_reason = reason
        status.pending_at = None
    elif pending_open and status.state is EligibilityState.TRACKING:
        status.state = EligibilityState.PENDING
        status.pending_at = (lineup.season, lineup.week)


def compute_eligibility(
    events: Iterable[RosterEvent],
    lineups: Iterable[WeeklyLineup],
    owner_id: str,
    current_week: Optional[Tuple[int, int]] = None,
    window: Optional[ActivationWindow] = None,
    now: Optional[datetime] = None,
    seasons: Optional[Iterable[int]] = None,
) -> Dict[str, EligibilityStatus]:
    """
    Replay one franchise's roster events and weekly lineups across seasons.

    Args:
        events: Roster events (any franchise, any order)
        lineups: Weekly lineups (any franchise, any order)
        owner_id: Franchise to evaluate
        current_week: (season, week) of the live scoring week, if any
        window: Activation-decision window for pending starts
        now: Clock override for the window check
        seasons: Restrict to these seasons

    Returns:
        player -> EligibilityStatus; players never acquired are absent
    """
    season_filter = set(seasons) if seasons is not None else None
    window = window or ActivationWindow()
    window_open = current_week is not None and window.is_open(now)

    stream: List[Tuple[Tuple[int, int, int, int, int], Any]] = []
    for e in events:
        if e.owner_id != owner_id or (season_filter is not None and e.season not in season_filter):
            continue
        # Transactions in a leg precede that week's games
        stream.append(((e.season, e.week, 0, e.ts, 0 if isinstance(e, Acquisition) else 1), e))
    for lu in lineups:
        if lu.owner_id != owner_id or (season_filter is not None and lu.season not in season_filter):
            continue
        stream.append(((lu.season, lu.week, 1, 0, 0), lu))
    stream.sort(key=lambda item: item[0])

    statuses: Dict[str, EligibilityStatus] = {}
    for _, item in stream:
        if isinstance(item, Acquisition):
            statuses[item.player] = _on_acquisition(statuses.get(item.player), item)
        elif isinstance(item, Release):
            if item.player in statuses:
                statuses[item.player] = _on_release(statuses[item.player], item)
        else:
            pending_open = window_open and (item.season, item.week) == current_week
            for player, reason in _fielded(item).items():
                status = statuses.get(player)
                if status is not None:
                    _on_lineup(status, item, reason, pending_open)

    activated = sum(1 for s in statuses.values() if s.activated)
    logger.debug(f"Eligibility for {owner_id}: {len(statuses)} tracked, {activated} activated")
    return statuses


# =============================================================================
# TAXI REPORT
# =============================================================================

@dataclass
class TaxiPlayer:
    player_id: str
    name: Optional[str] = None
    position: Optional[str] = None
    since_ts: Optional[int] = None
    since: Optional[Tuple[int, int]] = None
    via: Optional[str] = None
    state: Optional[EligibilityState] = None
    activated_at: Optional[Tuple[int, int]] = None
    pending_at: Optional[Tuple[int, int]] = None
    ineligible_reason: Optional[str] = None


@dataclass
class TaxiViolation:
    code: str
    detail: str
    players: List[str] = field(default_factory=list)


@dataclass
class EligibilityReport:
    """Current taxi squad status for one franchise."""
    owner_id: str
    team_name: str
    season: int
    roster_id: Optional[int]
    limits: TaxiLimits
    taxi: List[TaxiPlayer] = field(default_factory=list)
    counts: Dict[str, int] = field(default_factory=dict)
    over_slots: bool = False
    over_qb: bool = False
    ineligible_on_taxi: List[str] = field(default_factory=list)
    pending_on_taxi: List[str] = field(default_factory=list)
    roster_inconsistent: List[str] = field(default_factory=list)
    invalid_intake: List[str] = field(default_factory=list)
    violations: List[TaxiViolation] = field(default_factory=list)
    gaps: List[Gap] = field(default_factory=list)

    @property
    def compliant(self) -> bool:
        return not self.violations


def check_taxi_quota(
    taxi_ids: Sequence[str],
    positions: Dict[str, Optional[str]],
    limits: TaxiLimits,
) -> Tuple[bool, bool, Dict[str, int]]:
    """Returns (over_slots, over_qb, counts) for a restricted-slot list."""
    qbs = sum(1 for pid in taxi_ids if (positions.get(pid) or "").upper() == "QB")
    counts = {"total": len(taxi_ids), "qbs": qbs}
    return counts["total"] > limits.max_slots, qbs > limits.max_qb, counts


def _player_name(meta: Dict[str, Any]) -> Optional[str]:
    if not meta:
        return None
    name = f"{meta.get('first_name') or ''} {meta.get('last_name') or ''}".strip()
    return name or meta.get("full_name")


def build_eligibility_report(
    owner_id: str,
    season: int,
    roster: Optional[RosterSnapshot],
    statuses: Dict[str, EligibilityStatus],
    players: Dict[str, Dict[str, Any]],
    limits: TaxiLimits,
    current_starters: Iterable[str] = (),
    team_name: Optional[str] = None,
    gaps: Optional[List[Gap]] = None,
) -> EligibilityReport:
    """Evaluate a franchise's current taxi list against statuses and quotas."""
    report = EligibilityReport(
        owner_id=owner_id,
        team_name=team_name or f"Owner {owner_id}",
        season=season,
        roster_id=roster.roster_id if roster else None,
        limits=limits,
        gaps=list(gaps or []),
    )
    taxi_ids = list(roster.taxi) if roster else []
    starters = set(current_starters) | set(roster.starters if roster else ())
    reserve = set(roster.reserve if roster else ())

    positions = {pid: (players.get(pid) or {}).get("position") for pid in taxi_ids}
    report.over_slots, report.over_qb, report.counts = check_taxi_quota(taxi_ids, positions, limits)

    for pid in taxi_ids:
        status = statuses.get(pid)
        acq = status.acquisition if status else None
        item = TaxiPlayer(
            player_id=pid,
            name=_player_name(players.get(pid) or {}),
            position=positions.get(pid),
            since_ts=acq.ts if acq else None,
            since=(acq.season, acq.week) if acq and acq.week > 0 else None,
            via=acq.via if acq else None,
            state=status.state if status else None,
        )
        if status is not None and status.activated:
            item.activated_at = status.activated_at
            item.ineligible_reason = (
                "Activated on IR" if status.activation_reason == "ir" else "Activated in lineup"
            )
            report.ineligible_on_taxi.append(pid)
        if status is not None and status.pending_activation:
            item.pending_at = status.pending_at
            report.pending_on_taxi.append(pid)
        if pid in starters or pid in reserve:
            report.roster_inconsistent.append(pid)
        # Drafted players never appear in transactions and are valid intake
        if acq is not None and acq.via not in VALID_INTAKE:
            report.invalid_intake.append(pid)
        report.taxi.append(item)

    if report.over_slots:
        report.violations.append(TaxiViolation(
            "too_many_on_taxi", f"{report.counts['total']} on taxi (limit {limits.max_slots})", list(taxi_ids)
        ))
    if report.over_qb:
        qbs = [pid for pid in taxi_ids if (positions.get(pid) or "").upper() == "QB"]
        report.violations.append(TaxiViolation(
            "too_many_qbs", f"{report.counts['qbs']} QBs on taxi (limit {limits.max_qb})", qbs
        ))
    if report.roster_inconsistent:
        report.violations.append(TaxiViolation(
            "roster_inconsistent", "Taxi conflicts with starters/IR", list(report.roster_inconsistent)
        ))
    if report.invalid_intake:
        report.violations.append(TaxiViolation(
            "invalid_intake", "Taxi intake must be FA/waiver/trade/draft", list(report.invalid_intake)
        ))
    if report.ineligible_on_taxi:
        report.violations.append(TaxiViolation(
            "ineligible_on_taxi", "Activated this tenure", list(report.ineligible_on_taxi)
        ))

    logger.info(
        f"Taxi report for {report.team_name} ({season}): {report.counts['total']} players, "
        f"{len(report.violations)} violations"
    )
    return report
