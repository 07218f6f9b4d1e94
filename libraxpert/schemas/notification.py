from datetime import datetime
from typing import Dict, List, Literal, Optional, Type, Union
from pydantic import BaseModel, computed_field

from libraxpert.db.models import NotificationType


class BorrowRequestRef(BaseModel):
    kind: Literal["borrow_request"] = "borrow_request"
    id: str


class RenewalRef(BaseModel):
    kind: Literal["loan_renewal"] = "loan_renewal"
    id: str


class ReservationRef(BaseModel):
    kind: Literal["reservation"] = "reservation"
    id: str


class FeedbackRef(BaseModel):
    kind: Literal["feedback"] = "feedback"
    id: str


NotificationPayload = Union[BorrowRequestRef, RenewalRef, ReservationRef, FeedbackRef]

RELATED_REF_BY_TYPE: Dict[NotificationType, Type[BaseModel]] = {
    NotificationType.BORROW_REQUEST: BorrowRequestRef,
    NotificationType.BORROW_APPROVED: BorrowRequestRef,
    NotificationType.BORROW_DECLINED: BorrowRequestRef,
    NotificationType.LOAN_RENEWAL_REQUEST: RenewalRef,
    NotificationType.LOAN_RENEWAL_DECISION: RenewalRef,
    NotificationType.RESERVATION_CREATED: ReservationRef,
    NotificationType.RESERVATION_CANCELLED: ReservationRef,
    NotificationType.BOOK_AVAILABLE: ReservationRef,
    NotificationType.FEEDBACK: FeedbackRef,
}


def related_ref(
    type: NotificationType, related_id: Optional[str]
) -> Optional[NotificationPayload]:
    """Type the loose ``related_id`` according to the notification type."""
    if not related_id:
        return None
    return RELATED_REF_BY_TYPE[type](id=related_id)


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    title: str
    message: str
    type: NotificationType
    related_id: Optional[str]
    action_link: Optional[str]
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def related(self) -> Optional[NotificationPayload]:
        return related_ref(self.type, self.related_id)


class NotificationListResponse(BaseModel):
    items: List[NotificationResponse]
    total: int


class MessageResponse(BaseModel):
    message: str
