from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from ..common.datetime_utils import format_clock, minutes_between
from ..core.enums import EntryType, ImportWarningType
from ..policy.model import ReconciliationPolicy
from ..presence.model import Break, PresenceRecord
from .model import ConversionResult, ConversionWarning, ConvertedTimeEntryCandidate


class TimeSegmentationConverter:
    """Turns one presence record into ordered time-entry candidates.

    Work time is split around breaks; a break becomes its own candidate only
    when the policy marks its category as convertible. Short work segments are
    dropped with a warning, never an error, so partial data cannot abort a batch.
    """

    def convert(self, record: PresenceRecord, policy: ReconciliationPolicy) -> ConversionResult:
        warnings: List[ConversionWarning] = []

        if not record.clock_in or not record.clock_out:
            warnings.append(ConversionWarning(ImportWarningType.MISSING_INFO, "Presence has no clock-in or clock-out"))
            return ConversionResult(warnings=tuple(warnings))
        if record.clock_in >= record.clock_out:
            warnings.append(ConversionWarning(ImportWarningType.DATA_QUALITY, "Clock-in is not before clock-out"))
            return ConversionResult(warnings=tuple(warnings))

        candidates: List[ConvertedTimeEntryCandidate] = []

        if policy.split_by_breaks and record.breaks:
            cursor = record.clock_in
            for brk in sorted(record.breaks, key=lambda b: b.start):
                if brk.start < cursor:
                    warnings.append(
                        ConversionWarning(
                            ImportWarningType.DATA_QUALITY,
                            f"Break {brk.break_id} overlaps the previous segment",
                        )
                    )
                if brk.start > record.clock_out or (brk.end and brk.end > record.clock_out):
                    warnings.append(
                        ConversionWarning(
                            ImportWarningType.DATA_QUALITY,
                            f"Break {brk.break_id} extends past clock-out",
                        )
                    )

                if brk.start > cursor:
                    self._add_work_segment(record, policy, cursor, brk.start, candidates, warnings)

                if brk.end is None:
                    warnings.append(
                        ConversionWarning(
                            ImportWarningType.MISSING_INFO,
                            f"Break {brk.break_id} has no end time, break segment skipped",
                        )
                    )
                elif policy.convert_breaks:
                    rule = policy.rule_for(brk.category)
                    if rule and rule.convert_to_activity:
                        candidates.append(self._break_candidate(record, policy, brk))

                cursor = brk.end or brk.start

            if cursor < record.clock_out:
                self._add_work_segment(record, policy, cursor, record.clock_out, candidates, warnings)
        else:
            candidates.append(self._work_candidate(record, policy, record.clock_in, record.clock_out))

        self._check_day_total(candidates, policy, warnings)
        return ConversionResult(candidates=tuple(candidates), warnings=tuple(warnings))

    def convert_breaks(self, record: PresenceRecord, policy: ReconciliationPolicy) -> ConversionResult:
        """Convertible, closed breaks only (break-conversion imports)."""
        warnings: List[ConversionWarning] = []
        candidates: List[ConvertedTimeEntryCandidate] = []

        for brk in sorted(record.breaks, key=lambda b: b.start):
            rule = policy.rule_for(brk.category)
            if not rule or not rule.convert_to_activity:
                continue
            if brk.end is None:
                warnings.append(ConversionWarning(ImportWarningType.MISSING_INFO, f"Break {brk.break_id} has no end time"))
                continue
            if (brk.duration_minutes or 0) < policy.minimum_entry_duration:
                warnings.append(
                    ConversionWarning(
                        ImportWarningType.DATA_QUALITY,
                        f"Break {brk.break_id} shorter than {policy.minimum_entry_duration}min, not converted",
                    )
                )
                continue
            candidates.append(self._break_candidate(record, policy, brk))

        return ConversionResult(candidates=tuple(candidates), warnings=tuple(warnings))

    # -------- Segments --------
    def _add_work_segment(
        self,
        record: PresenceRecord,
        policy: ReconciliationPolicy,
        start: datetime,
        end: datetime,
        candidates: List[ConvertedTimeEntryCandidate],
        warnings: List[ConversionWarning],
    ) -> None:
        duration = minutes_between(start, end)
        if duration < policy.minimum_entry_duration:
            warnings.append(
                ConversionWarning(
                    ImportWarningType.DATA_QUALITY,
                    f"Work segment {format_clock(start)}-{format_clock(end)} ({duration}min) "
                    f"below minimum {policy.minimum_entry_duration}min, dropped",
                )
            )
            return
        candidates.append(self._work_candidate(record, policy, start, end))

    def _work_candidate(
        self, record: PresenceRecord, policy: ReconciliationPolicy, start: datetime, end: datetime
    ) -> ConvertedTimeEntryCandidate:
        if policy.default_project_id:
            project_id: Optional[str] = policy.default_project_id
            billable = True
            description = "Work time from presence data"
        else:
            project_id = None
            billable = False
            description = f"Work from {format_clock(start)} to {format_clock(end)}"

        return self._validated(
            record,
            policy,
            start=start,
            end=end,
            entry_type=EntryType.WORK,
            project_id=project_id,
            activity_code_id=None,
            description=description,
            billable=billable,
            break_id=None,
        )

    def _break_candidate(self, record: PresenceRecord, policy: ReconciliationPolicy, brk: Break) -> ConvertedTimeEntryCandidate:
        rule = policy.rule_for(brk.category)
        return self._validated(
            record,
            policy,
            start=brk.start,
            end=brk.end,
            entry_type=EntryType.BREAK,
            project_id=None,
            activity_code_id=rule.activity_code_id if rule else None,
            description=(rule.description if rule else None) or brk.description or f"{brk.category} break",
            billable=bool(rule and rule.billable),
            break_id=brk.break_id,
        )

    @staticmethod
    def _validated(
        record: PresenceRecord,
        policy: ReconciliationPolicy,
        *,
        start: datetime,
        end: datetime,
        entry_type: EntryType,
        project_id: Optional[str],
        activity_code_id: Optional[str],
        description: str,
        billable: bool,
        break_id: Optional[str],
    ) -> ConvertedTimeEntryCandidate:
        duration = minutes_between(start, end)
        errors: List[str] = []
        warnings: List[str] = []

        if duration < policy.minimum_entry_duration:
            errors.append(f"Duration ({duration}min) below minimum ({policy.minimum_entry_duration}min)")
        if start >= end:
            errors.append("Start time must be before end time")
        if billable and not (project_id or activity_code_id):
            warnings.append("Billable entry without project assignment")
        if policy.require_minimum_hours and duration < policy.minimum_daily_hours * 60:
            warnings.append(f"Duration below daily minimum ({policy.minimum_daily_hours}h)")

        return ConvertedTimeEntryCandidate(
            employee_id=record.employee_id,
            date=record.date,
            start=start,
            end=end,
            duration_minutes=duration,
            entry_type=entry_type,
            source_presence_id=record.presence_id,
            source_break_id=break_id,
            project_id=project_id,
            activity_code_id=activity_code_id,
            description=description,
            billable=billable,
            errors=tuple(errors),
            warnings=tuple(warnings),
        )

    @staticmethod
    def _check_day_total(
        candidates: List[ConvertedTimeEntryCandidate], policy: ReconciliationPolicy, warnings: List[ConversionWarning]
    ) -> None:
        worked = sum(c.duration_minutes for c in candidates if c.is_valid and c.entry_type == EntryType.WORK)
        if not candidates:
            return
        if worked < policy.minimum_work_duration or worked > policy.maximum_work_duration:
            warnings.append(
                ConversionWarning(
                    ImportWarningType.DATA_QUALITY,
                    f"Converted work total {worked}min outside plausible range "
                    f"[{policy.minimum_work_duration}, {policy.maximum_work_duration}]min",
                )
            )
