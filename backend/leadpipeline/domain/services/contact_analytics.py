"""
Contact Analytics Engine
Success rates, temporal trends, conversion funnel and recommendations
derived from contact-attempt history
"""
import logging
from collections import OrderedDict
from typing import Dict, Iterable, List, Optional, Sequence
from datetime import date, datetime, timedelta, timezone, tzinfo

from leadpipeline.domain.models.contact_attempt import (
    ContactAttempt,
    ContactChannel,
    ContactResult,
    CHANNEL_ORDER,
    RESULT_ORDER,
)
from leadpipeline.domain.models.pipeline_card import LeadPipelineCard
from leadpipeline.domain.models.team import CommercialTeamMember
from leadpipeline.domain.models.analytics import (
    AgentContactAnalytics,
    ContactAnalytics,
    ConversionFunnel,
    DailyTrend,
    HourlyTrend,
    Impact,
    Performance,
    Recommendation,
    RecommendationType,
    ResultBreakdown,
    TeamContactAnalytics,
    Trends,
    TypeBreakdown,
    WeekdayTrend,
    WEEKDAY_NAMES,
    DEFAULT_BEST_TYPE,
    DEFAULT_BEST_HOUR,
    DEFAULT_BEST_DAY,
)
from leadpipeline.domain.models.pipeline_config import PipelineConfig
from leadpipeline.domain.services.team_comparator import compare_team

logger = logging.getLogger(__name__)


def _rate(successes: int, total: int) -> float:
    return (successes / total) * 100 if total > 0 else 0.0


def _as_utc(moment: datetime) -> datetime:
    # Naive timestamps are taken to be UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


class ContactAnalyticsEngine:
    """
    Pure analytics over attempt collections.

    Never raises on empty or sparse input and never mutates its inputs.
    Temporal buckets (day, hour, weekday) use the configured business
    timezone.
    """

    def __init__(self, config: Optional[PipelineConfig] = None):
        self._config = config or PipelineConfig.default()
        self._thresholds = self._config.analytics

    @property
    def tz(self) -> tzinfo:
        return self._config.tzinfo

    def _local(self, moment: datetime) -> datetime:
        return _as_utc(moment).astimezone(self.tz)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def analyze(
        self,
        attempts: Iterable[ContactAttempt],
        as_of: Optional[datetime] = None
    ) -> ContactAnalytics:
        """
        Analyze a collection of attempts (one lead or many).

        Args:
            attempts: Attempts in any order
            as_of: End of the daily trend window. Defaults to the latest
                attempt; with no attempts and no as_of the window is empty.
        """
        ordered = sorted(attempts, key=lambda a: _as_utc(a.contacted_at))
        total = len(ordered)
        successes = sum(1 for a in ordered if a.is_success)
        success_rate = _rate(successes, total)

        by_type = self._by_type(ordered)
        by_result = self._by_result(ordered)
        trends = self._trends(ordered, as_of)

        per_lead = self._group_by_lead(ordered)
        gap_hours = self._average_gap_hours(per_lead)

        performance = Performance(
            best_performing_type=self._best_type(by_type),
            best_performing_hour=self._best_hour(trends.hourly),
            best_performing_day=self._best_day(trends.weekday),
            average_time_between_attempts=gap_hours,
            conversion_funnel=self._conversion_funnel(per_lead),
        )

        analytics = ContactAnalytics(
            total_attempts=total,
            success_rate=success_rate,
            average_attempts_to_success=self._average_attempts_to_success(per_lead, total),
            average_response_time=gap_hours,
            by_type=by_type,
            by_result=by_result,
            trends=trends,
            performance=performance,
        )
        analytics.recommendations = self._recommendations(analytics)
        return analytics

    def analyze_card(self, card: LeadPipelineCard, as_of: Optional[datetime] = None) -> ContactAnalytics:
        return self.analyze(card.contact_attempts, as_of)

    def analyze_team(
        self,
        cards: Sequence[LeadPipelineCard],
        roster: Sequence[CommercialTeamMember],
        as_of: Optional[datetime] = None
    ) -> TeamContactAnalytics:
        """
        Team overview, per-agent analytics and comparisons.

        Cards are grouped by their current owner; unassigned cards only
        count towards the overview.
        """
        names = {member.id: member.name for member in roster}
        overview = self.analyze([a for card in cards for a in card.contact_attempts], as_of)

        owned: Dict[str, List[LeadPipelineCard]] = OrderedDict()
        for card in cards:
            if card.current_owner:
                owned.setdefault(card.current_owner, []).append(card)

        by_agent: Dict[str, AgentContactAnalytics] = {}
        for agent_id, agent_cards in owned.items():
            by_agent[agent_id] = AgentContactAnalytics(
                agent_id=agent_id,
                agent_name=names.get(agent_id, agent_id),
                total_leads=len(agent_cards),
                active_leads=sum(1 for card in agent_cards if not card.is_closed),
                analytics=self.analyze([a for card in agent_cards for a in card.contact_attempts], as_of),
            )

        comparisons = compare_team(
            {agent_id: data.analytics for agent_id, data in by_agent.items()},
            tolerance=self._thresholds.team_average_tolerance,
            needs_improvement_ratio=self._thresholds.needs_improvement_ratio,
        )

        logger.debug(f"Team analytics over {len(cards)} card(s), {len(by_agent)} agent(s)")
        return TeamContactAnalytics(team_overview=overview, by_agent=by_agent, comparisons=comparisons)

    # ------------------------------------------------------------------
    # Breakdowns
    # ------------------------------------------------------------------

    def _by_type(self, attempts: List[ContactAttempt]) -> Dict[ContactChannel, TypeBreakdown]:
        result: Dict[ContactChannel, TypeBreakdown] = {}
        for channel in CHANNEL_ORDER:
            of_type = [a for a in attempts if a.channel == channel]
            success_count = sum(1 for a in of_type if a.is_success)

            average_duration = None
            if channel == ContactChannel.CALL:
                durations = [a.duration_minutes for a in of_type if a.duration_minutes is not None]
                if durations:
                    average_duration = sum(durations) / len(durations)

            result[channel] = TypeBreakdown(
                total=len(of_type),
                success_count=success_count,
                success_rate=_rate(success_count, len(of_type)),
                average_duration=average_duration,
            )
        return result

    def _by_result(self, attempts: List[ContactAttempt]) -> Dict[ContactResult, ResultBreakdown]:
        total = len(attempts)
        result: Dict[ContactResult, ResultBreakdown] = {}
        for outcome in RESULT_ORDER:
            count = sum(1 for a in attempts if a.result == outcome)
            result[outcome] = ResultBreakdown(count=count, percentage=_rate(count, total))
        return result

    # ------------------------------------------------------------------
    # Trends
    # ------------------------------------------------------------------

    def _trends(self, attempts: List[ContactAttempt], as_of: Optional[datetime]) -> Trends:
        local = [(self._local(a.contacted_at), a.is_success) for a in attempts]

        hourly = []
        for hour in range(24):
            bucket = [ok for moment, ok in local if moment.hour == hour]
            hourly.append(HourlyTrend(
                hour=hour,
                attempts=len(bucket),
                successes=sum(bucket),
                success_rate=_rate(sum(bucket), len(bucket)),
            ))

        weekday = []
        for index, name in enumerate(WEEKDAY_NAMES):
            # isoweekday: Monday=1 .. Sunday=7, so Sunday maps to index 0
            bucket = [ok for moment, ok in local if moment.isoweekday() % 7 == index]
            weekday.append(WeekdayTrend(
                day=name,
                attempts=len(bucket),
                successes=sum(bucket),
                success_rate=_rate(sum(bucket), len(bucket)),
            ))

        return Trends(daily=self._daily(local, as_of), hourly=hourly, weekday=weekday)

    def _daily(self, local: list, as_of: Optional[datetime]) -> List[DailyTrend]:
        if as_of is not None:
            end: date = self._local(as_of).date()
        elif local:
            end = local[-1][0].date()
        else:
            return []

        days = self._thresholds.trailing_days
        counts: Dict[date, List[bool]] = OrderedDict(
            (end - timedelta(days=offset), []) for offset in range(days - 1, -1, -1)
        )
        for moment, ok in local:
            bucket = counts.get(moment.date())
            if bucket is not None:
                bucket.append(ok)

        return [
            DailyTrend(
                date=day.isoformat(),
                attempts=len(bucket),
                successes=sum(bucket),
                success_rate=_rate(sum(bucket), len(bucket)),
            )
            for day, bucket in counts.items()
        ]

    # ------------------------------------------------------------------
    # Performance
    # ------------------------------------------------------------------

    @staticmethod
    def _best_type(by_type: Dict[ContactChannel, TypeBreakdown]) -> ContactChannel:
        best = None
        for channel in CHANNEL_ORDER:
            data = by_type[channel]
            if data.total > 0 and (best is None or data.success_rate > by_type[best].success_rate):
                best = channel
        return best if best is not None else DEFAULT_BEST_TYPE

    @staticmethod
    def _best_hour(hourly: List[HourlyTrend]) -> int:
        best = None
        for bucket in hourly:
            if bucket.attempts > 0 and (best is None or bucket.success_rate > best.success_rate):
                best = bucket
        return best.hour if best is not None else DEFAULT_BEST_HOUR

    @staticmethod
    def _best_day(weekday: List[WeekdayTrend]) -> str:
        best = None
        for bucket in weekday:
            if bucket.attempts > 0 and (best is None or bucket.success_rate > best.success_rate):
                best = bucket
        return best.day if best is not None else DEFAULT_BEST_DAY

    @staticmethod
    def _group_by_lead(attempts: List[ContactAttempt]) -> Dict[str, List[ContactAttempt]]:
        """Group chronologically sorted attempts by card, keeping order."""
        groups: Dict[str, List[ContactAttempt]] = OrderedDict()
        for attempt in attempts:
            groups.setdefault(attempt.lead_pipeline_id, []).append(attempt)
        return groups

    @staticmethod
    def _first_success_ordinals(per_lead: Dict[str, List[ContactAttempt]]) -> List[int]:
        ordinals = []
        for lead_attempts in per_lead.values():
            for index, attempt in enumerate(lead_attempts, start=1):
                if attempt.is_success:
                    ordinals.append(index)
                    break
        return ordinals

    def _average_attempts_to_success(self, per_lead: Dict[str, List[ContactAttempt]], total: int) -> float:
        """Mean 1-based ordinal of each lead's first success; total when nothing converted."""
        ordinals = self._first_success_ordinals(per_lead)
        if not ordinals:
            return float(total)
        return sum(ordinals) / len(ordinals)

    @staticmethod
    def _average_gap_hours(per_lead: Dict[str, List[ContactAttempt]]) -> float:
        """Mean gap between consecutive attempts of the same lead, in hours."""
        gaps = []
        for lead_attempts in per_lead.values():
            for previous, current in zip(lead_attempts, lead_attempts[1:]):
                delta = _as_utc(current.contacted_at) - _as_utc(previous.contacted_at)
                gaps.append(delta.total_seconds() / 3600)
        return sum(gaps) / len(gaps) if gaps else 0.0

    def _conversion_funnel(self, per_lead: Dict[str, List[ContactAttempt]]) -> ConversionFunnel:
        funnel = ConversionFunnel()
        for ordinal in self._first_success_ordinals(per_lead):
            if ordinal == 1:
                funnel.first_attempt += 1
            elif ordinal == 2:
                funnel.second_attempt += 1
            elif ordinal == 3:
                funnel.third_attempt += 1
            else:
                funnel.fourth_plus_attempt += 1
        return funnel

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    def _recommendations(self, analytics: ContactAnalytics) -> List[Recommendation]:
        if analytics.total_attempts == 0:
            return []

        thresholds = self._thresholds
        performance = analytics.performance
        recommendations: List[Recommendation] = []

        if performance.best_performing_hour != thresholds.baseline_hour:
            recommendations.append(Recommendation(
                type=RecommendationType.TIMING,
                title="Optimize contact time",
                description=(
                    f"Try contacting leads at {performance.best_performing_hour}h, "
                    f"when the success rate is highest."
                ),
                impact=Impact.MEDIUM,
            ))

        best_channel = performance.best_performing_type
        best_rate = analytics.by_type[best_channel].success_rate
        if analytics.by_type[best_channel].total > 0 and best_rate > analytics.success_rate:
            recommendations.append(Recommendation(
                type=RecommendationType.CHANNEL,
                title="Prioritize the most effective channel",
                description=(
                    f"{best_channel.value} has a {best_rate:.1f}% success rate; "
                    f"consider using this channel more."
                ),
                impact=Impact.HIGH,
            ))

        if performance.average_time_between_attempts > thresholds.frequency_threshold_hours:
            recommendations.append(Recommendation(
                type=RecommendationType.FREQUENCY,
                title="Shorten the interval between attempts",
                description="The average time between attempts is high. Follow up more often.",
                impact=Impact.MEDIUM,
            ))

        if analytics.success_rate < thresholds.success_rate_floor:
            recommendations.append(Recommendation(
                type=RecommendationType.STRATEGY,
                title="Review the contact approach",
                description="A low success rate suggests the script or approach needs review.",
                impact=Impact.HIGH,
            ))

        return recommendations

