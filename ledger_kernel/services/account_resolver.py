"""
AccountResolver -- fills journal lines that a handler left without a code.

Resolution order for a line with no account code:

    1. the company's override for the line's side
       (JournalEventSetting.default_debit_account / default_credit_account)
    2. the global default for the line's fallback role (AccountDefaults)
    3. otherwise AccountResolutionError

Lines that already carry a code are returned unchanged; overrides never
replace an explicit code.
"""

from ledger_kernel.domain.accounts import AccountDefaults
from ledger_kernel.domain.dtos import EventSetting, JournalLineSpec, JournalSpec
from ledger_kernel.domain.event_types import EventType
from ledger_kernel.exceptions import AccountResolutionError


class AccountResolver:
    """Pure once the company's setting has been looked up."""

    def __init__(self, defaults: AccountDefaults):
        self.defaults = defaults

    def resolve_line(
        self,
        line: JournalLineSpec,
        setting: EventSetting,
        company_id,
        event_type: EventType,
    ) -> JournalLineSpec:
        if line.account_code:
            return line
        code = setting.override_for(line.side)
        if not code and line.fallback_role is not None:
            code = self.defaults.account(line.fallback_role)
        if not code:
            raise AccountResolutionError(
                company_id=str(company_id),
                event_type=event_type.value,
                side=line.side.value,
                line_description=line.description or None,
            )
        return line.with_account(code)

    def resolve(
        self,
        spec: JournalSpec,
        setting: EventSetting,
        event_type: EventType,
    ) -> JournalSpec:
        if not spec.unresolved_lines:
            return spec
        return spec.with_lines(tuple(
            self.resolve_line(line, setting, spec.company_id, event_type)
            for line in spec.lines
        ))
