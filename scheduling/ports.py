"""Scheduling port: book a time slot for a service line."""

import datetime
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class BookingRequest:
    tenant_id: int
    order_ref: int
    item_id: int
    date: datetime.date
    start_time: datetime.time
    end_time: Optional[datetime.time] = None
    partner_id: Optional[int] = None
    customer_id: Optional[int] = None
    order_line_ref: Optional[int] = None


class Scheduler(ABC):
    @abstractmethod
    def book(self, request: BookingRequest) -> str:
        """Book the slot and return a confirmation id."""

    @abstractmethod
    def cancel_for_order(self, order_ref: int) -> int:
        """Cancel every open booking of an order; returns how many were cancelled."""
