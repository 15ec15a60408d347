from typing import Optional

from ridecore.common.exceptions import IllegalTransition
from ridecore.shared.models.enums import RideStatus
from ridecore.shared.models.ride_dto import Driver


class RideStateMachine:
    ALLOWED_TRANSITIONS = {
        RideStatus.REQUESTED: [RideStatus.ASSIGNED, RideStatus.CANCELLED],
        RideStatus.ASSIGNED: [RideStatus.ACCEPTED, RideStatus.CANCELLED],
        RideStatus.ACCEPTED: [RideStatus.ON_TRIP, RideStatus.CANCELLED],
        # Поездку в процессе нельзя отменить
        RideStatus.ON_TRIP: [RideStatus.COMPLETED],
        RideStatus.COMPLETED: [],
        RideStatus.CANCELLED: []
    }

    CANCELLABLE = frozenset({RideStatus.REQUESTED, RideStatus.ASSIGNED, RideStatus.ACCEPTED})
    TERMINAL = frozenset({RideStatus.COMPLETED, RideStatus.CANCELLED})

    @staticmethod
    def _coerce(status) -> Optional[RideStatus]:
        try:
            return RideStatus(status)
        except ValueError:
            return None

    @staticmethod
    def can_transition(current_status: str, new_status: str) -> bool:
        curr = RideStateMachine._coerce(current_status)
        new = RideStateMachine._coerce(new_status)
        if curr is None or new is None:
            return False
        return new in RideStateMachine.ALLOWED_TRANSITIONS.get(curr, [])

    @staticmethod
    def next_statuses(current_status: str) -> list[RideStatus]:
        curr = RideStateMachine._coerce(current_status)
        return list(RideStateMachine.ALLOWED_TRANSITIONS.get(curr, []))

    @staticmethod
    def is_terminal(status: str) -> bool:
        return RideStateMachine._coerce(status) in RideStateMachine.TERMINAL

    @staticmethod
    def can_cancel(status: str) -> bool:
        return RideStateMachine._coerce(status) in RideStateMachine.CANCELLABLE

    @classmethod
    def ensure_transition(
        cls,
        current_status: str,
        new_status: str,
        driver: Optional[Driver] = None,
    ) -> RideStatus:
        """
        Проверяет переход и возвращает новый статус.

        Водитель передаётся ровно на переходе REQUESTED -> ASSIGNED и никогда иначе.

        Raises:
            IllegalTransition: переход не разрешён
        """
        curr = cls._coerce(current_status)
        new = cls._coerce(new_status)

        if not cls.can_transition(curr, new):
            reason = "терминальный статус" if curr in cls.TERMINAL else None
            raise IllegalTransition(curr, new, reason)

        if new == RideStatus.ASSIGNED and driver is None:
            raise IllegalTransition(curr, new, "назначение без водителя")
        if new != RideStatus.ASSIGNED and driver is not None:
            raise IllegalTransition(curr, new, "водитель передаётся только при назначении")

        return new

    @classmethod
    def ensure_can_cancel(cls, current_status: str) -> None:
        """
        Raises:
            IllegalTransition: отмена из текущего статуса запрещена
        """
        if not cls.can_cancel(current_status):
            raise IllegalTransition(
                cls._coerce(current_status),
                RideStatus.CANCELLED,
                "отмена возможна только до начала поездки",
            )
