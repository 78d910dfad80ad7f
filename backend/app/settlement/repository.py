"""Persistence for the invoice and subscription fields touched by settlement."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterable, Optional, Protocol

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ...app_context import get_conn
from ..subscriptions.models import BillingInterval, PlanKey, SubscriptionStatus
from .models import InvoiceStatus, SettlementError, SettlementInvoice, SubscriptionRecord


class SettlementRepository(Protocol):
    """Persistence operations required by the settlement service."""

    def get_invoice(self, invoice_id: str) -> Optional[SettlementInvoice]:
        ...

    def pin_exchange_rate(self, invoice_id: str, rate: float) -> Optional[SettlementInvoice]:
        """Store ``rate`` unless a rate is already pinned; return the stored invoice."""

    def mark_invoice_paid(self, invoice_id: str, reference: str) -> Optional[SettlementInvoice]:
        ...

    def save_subscription(self, record: SubscriptionRecord) -> SubscriptionRecord:
        ...

    def get_pending_subscription_by_customer(self, customer_id: str) -> Optional[SubscriptionRecord]:
        ...

    def update_subscription_status(
        self,
        gateway_subscription_id: str,
        status: SubscriptionStatus,
    ) -> Optional[SubscriptionRecord]:
        ...

    def update_user_plan(
        self,
        user_id: str,
        plan_key: PlanKey,
        status: SubscriptionStatus,
        *,
        reset_quota: bool = False,
    ) -> None:
        ...


@contextmanager
def managed_connection(conn: Optional[PgConnection] = None):
    """Context manager that manages transaction boundaries for optional connections."""

    if conn is not None:
        yield conn, False
        return

    connection = get_conn()
    try:
        yield connection, True
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    finally:
        connection.close()


def _row_to_invoice(row: dict) -> SettlementInvoice:
    """Map an invoice row; rows that cannot be settled raise :class:`SettlementError`."""

    rate = row.get("exchange_rate")
    try:
        return SettlementInvoice(
            invoice_id=str(row["id"]),
            amount=float(row["amount"]),
            currency=row["currency"],
            status=InvoiceStatus(row["status"]),
            exchange_rate=float(rate) if rate is not None else None,
            invoice_number=row.get("invoice_number"),
            business_name=row.get("business_name"),
            client_name=row.get("client_name"),
            payment_reference=row.get("payment_reference"),
            paid_at=row.get("paid_at"),
        )
    except ValueError as exc:
        raise SettlementError(
            "invalid_invoice",
            f"Invoice {row['id']} cannot be settled",
            detail={"reason": str(exc).splitlines()[0]},
        ) from exc


def _row_to_subscription(row: dict) -> SubscriptionRecord:
    return SubscriptionRecord(
        subscription_id=str(row["id"]),
        user_id=str(row["user_id"]),
        plan_key=PlanKey(row["plan_id"]),
        billing_interval=BillingInterval(row["interval"]),
        amount=float(row["amount"]),
        currency=row["currency"],
        status=SubscriptionStatus(row["status"]),
        gateway_reference=row.get("paystack_reference"),
        gateway_customer_id=row.get("paystack_customer_id"),
        gateway_subscription_id=row.get("paystack_subscription_id"),
        next_billing_date=row.get("next_billing_date"),
        started_at=row.get("started_at"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


_INVOICE_SELECT = """
    SELECT i.*, t.business_name
    FROM invoices i
    LEFT JOIN tenants t ON t.id = i.tenant_id
"""


class PostgresSettlementRepository:
    """Concrete repository persisting settlement state in PostgreSQL."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    @contextmanager
    def _cursor(self) -> Iterable[PgCursor]:
        with managed_connection(self._conn) as (connection, managed):
            cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            try:
                yield cursor
                if managed:
                    connection.commit()
            except Exception:
                if managed:
                    connection.rollback()
                raise
            finally:
                cursor.close()

    def _fetch_invoice(self, cursor: PgCursor, invoice_id: str) -> Optional[SettlementInvoice]:
        cursor.execute(_INVOICE_SELECT + " WHERE i.id = %s LIMIT 1", (invoice_id,))
        row = cursor.fetchone()
        return _row_to_invoice(row) if row else None

    def get_invoice(self, invoice_id: str) -> Optional[SettlementInvoice]:
        with self._cursor() as cursor:
            return self._fetch_invoice(cursor, invoice_id)

    def pin_exchange_rate(self, invoice_id: str, rate: float) -> Optional[SettlementInvoice]:
        """First writer wins: a rate pinned concurrently is kept, not overwritten."""

        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE invoices
                SET exchange_rate = COALESCE(exchange_rate, %s),
                    updated_at = NOW()
                WHERE id = %s
                """,
                (rate, invoice_id),
            )
            return self._fetch_invoice(cursor, invoice_id)

    def mark_invoice_paid(self, invoice_id: str, reference: str) -> Optional[SettlementInvoice]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE invoices
                SET status = %s,
                    paid_at = COALESCE(paid_at, NOW()),
                    payment_reference = %s,
                    updated_at = NOW()
                WHERE id = %s
                """,
                (InvoiceStatus.PAID.value, reference, invoice_id),
            )
            return self._fetch_invoice(cursor, invoice_id)

    def save_subscription(self, record: SubscriptionRecord) -> SubscriptionRecord:
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO subscriptions (
                    id,
                    user_id,
                    plan_id,
                    interval,
                    amount,
                    currency,
                    status,
                    paystack_reference,
                    paystack_customer_id,
                    paystack_subscription_id,
                    next_billing_date,
                    started_at
                )
                VALUES (%(id)s, %(user_id)s, %(plan_id)s, %(interval)s, %(amount)s,
                        %(currency)s, %(status)s, %(reference)s, %(customer_id)s,
                        %(subscription_code)s, %(next_billing_date)s, %(started_at)s)
                ON CONFLICT (id) DO UPDATE SET
                    status = EXCLUDED.status,
                    paystack_subscription_id = EXCLUDED.paystack_subscription_id,
                    next_billing_date = EXCLUDED.next_billing_date,
                    started_at = EXCLUDED.started_at,
                    updated_at = NOW()
                RETURNING *
                """,
                {
                    "id": record.subscription_id,
                    "user_id": record.user_id,
                    "plan_id": record.plan_key.value,
                    "interval": record.billing_interval.value,
                    "amount": record.amount,
                    "currency": record.currency.value,
                    "status": record.status.value,
                    "reference": record.gateway_reference,
                    "customer_id": record.gateway_customer_id,
                    "subscription_code": record.gateway_subscription_id,
                    "next_billing_date": record.next_billing_date,
                    "started_at": record.started_at,
                },
            )
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist subscription")
            return _row_to_subscription(row)

    def get_pending_subscription_by_customer(self, customer_id: str) -> Optional[SubscriptionRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM subscriptions
                WHERE paystack_customer_id = %s AND status = %s
                ORDER BY created_at DESC
                LIMIT 1
                """,
                (customer_id, SubscriptionStatus.PENDING.value),
            )
            row = cursor.fetchone()
            return _row_to_subscription(row) if row else None

    def update_subscription_status(
        self,
        gateway_subscription_id: str,
        status: SubscriptionStatus,
    ) -> Optional[SubscriptionRecord]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE subscriptions
                SET status = %s,
                    cancelled_at = CASE WHEN %s THEN NOW() ELSE cancelled_at END,
                    updated_at = NOW()
                WHERE paystack_subscription_id = %s
                RETURNING *
                """,
                (status.value, status == SubscriptionStatus.CANCELLED, gateway_subscription_id),
            )
            row = cursor.fetchone()
            return _row_to_subscription(row) if row else None

    def update_user_plan(
        self,
        user_id: str,
        plan_key: PlanKey,
        status: SubscriptionStatus,
        *,
        reset_quota: bool = False,
    ) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE users
                SET subscription_tier = %s,
                    subscription_status = %s,
                    invoice_quota_used = CASE WHEN %s THEN 0 ELSE invoice_quota_used END,
                    updated_at = NOW()
                WHERE id = %s
                """,
                (plan_key.value, status.value, reset_quota, user_id),
            )
            if cursor.rowcount == 0:
                raise LookupError(f"User {user_id} not found")


__all__ = ["PostgresSettlementRepository", "SettlementRepository", "managed_connection"]
