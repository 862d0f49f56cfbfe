#!/usr/bin/env python3
"""
Command Executor - performs confirmed writes against the ledger and answers
read queries (balances, spend, recent activity, summaries, card statements,
budgets).
"""

from datetime import date
from typing import Callable, Dict, List, Optional

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from cashe.agents.confirmation_flow import resolve_statement_month
from cashe.agents.entity_extractor import period_to_date_range
from cashe.agents.fuzzy_matcher import FuzzyMatcher
from cashe.constants.responses import RESPONSES
from cashe.schemas.core import (
    ActionResult,
    Intent,
    InstallmentPurchase,
    LedgerFilter,
    Movement,
    ParsedEntities,
    ResolvedCardPayment,
    ResolvedCommand,
    ResolvedExpense,
    ResolvedIncome,
    ResolvedStampTax,
    ResolvedTransfer,
    Transfer,
    UserAccount,
    UserContext,
)
from cashe.utils.dates import (
    add_months,
    first_installment_date,
    first_installment_month,
    local_today,
    month_bounds,
    parse_statement_key,
    shift_month,
    statement_close_date,
)
from cashe.utils.errors import PersistenceError, ValidationError
from cashe.utils.formatting import DateFormatter, MoneyFormatter, interpolate
from cashe.utils.logger import get_logger
from cashe.utils.repositories import LedgerRepository, group_totals, sort_newest_first

logger = get_logger("command_executor")

DEFAULT_LIMIT = 5
MAX_RECENT = 20
TOP_ITEMS = 5
DEFAULT_CLOSING_DAY = 1

_command_adapter = TypeAdapter(ResolvedCommand)


class CommandExecutor:
    """Runs resolved commands against a ledger repository."""

    def __init__(self, ledger: LedgerRepository, clock: Optional[Callable[[], date]] = None):
        self.ledger = ledger
        self.clock = clock or local_today

    # Resolution
    def build_command(self, intent: Intent, entities: ParsedEntities, context: UserContext) -> ResolvedCommand:
        """
        Narrow the partial entities to a fully-populated command.

        Raises:
            ValidationError: a required field is missing or the values are inconsistent
        """
        today = self.clock()
        payload: Dict
        if intent in (Intent.REGISTRAR_GASTO, Intent.REGISTRAR_INGRESO):
            payload = {
                "kind": "expense" if intent == Intent.REGISTRAR_GASTO else "income",
                "amount": entities.amount,
                "currency": entities.currency or "ARS",
                "account_id": entities.account_id,
                "category_id": entities.category_id,
                "note": entities.note,
                "date": entities.date or today,
            }
            if intent == Intent.REGISTRAR_GASTO:
                payload["installments"] = entities.installments or 1
                payload["first_installment_date"] = entities.first_installment_date
        elif intent == Intent.REGISTRAR_TRANSFERENCIA:
            if entities.from_account_id and entities.from_account_id == entities.to_account_id:
                raise ValidationError("Transfer source and destination are the same account",
                                      response_key="ERROR_MISMA_CUENTA")
            payload = {
                "kind": "transfer",
                "amount": entities.amount,
                "from_account_id": entities.from_account_id,
                "to_account_id": entities.to_account_id,
                "note": entities.note,
                "date": entities.date or today,
            }
        elif intent == Intent.PAGAR_TARJETA:
            card = context.account_by_id(entities.target_card_id)
            payload = {
                "kind": "card_payment",
                "card_id": entities.target_card_id,
                "source_account_id": entities.source_account_id,
                "statement_month": resolve_statement_month(entities.statement_month, card, today),
                "amount": entities.amount,
                "date": entities.date or today,
            }
        elif intent == Intent.AGREGAR_SELLOS:
            card = context.account_by_id(entities.target_card_id)
            payload = {
                "kind": "stamp_tax",
                "card_id": entities.target_card_id,
                "statement_month": resolve_statement_month(entities.statement_month, card, today),
                "amount": entities.stamp_tax_amount,
            }
        else:
            raise ValidationError(f"{intent.value} is not a write command", response_key="NO_ENTENDI")

        try:
            return _command_adapter.validate_python(payload)
        except PydanticValidationError as e:
            raise ValidationError(f"Incomplete {intent.value} command: {e.error_count()} errors",
                                  details={"errors": e.errors(include_url=False)})

    # Writes
    async def execute_write(self, user_id: str, intent: Intent, entities: ParsedEntities,
                            context: UserContext) -> ActionResult:
        """
        Perform a confirmed write.

        Raises:
            ValidationError: incomplete or inconsistent command
            PersistenceError: the ledger write failed
        """
        command = self.build_command(intent, entities, context)
        logger.info(f"💾 Executing {command.kind} for user {user_id}")

        if isinstance(command, ResolvedExpense):
            if command.installments > 1:
                return await self._create_installment_purchase(user_id, command, context)
            return await self._create_movement(user_id, "expense", command, context)
        if isinstance(command, ResolvedIncome):
            return await self._create_movement(user_id, "income", command, context)
        if isinstance(command, ResolvedTransfer):
            return await self._create_transfer(user_id, command, context)
        if isinstance(command, ResolvedCardPayment):
            return await self._pay_card(user_id, command, context)
        return await self._add_stamp_tax(user_id, command, context)

    async def _create_movement(self, user_id: str, movement_type: str, command, context: UserContext) -> ActionResult:
        movement = await self.ledger.insert_movement(Movement(
            user_id=user_id,
            type=movement_type,
            date=command.date,
            amount=command.amount,
            currency=command.currency,
            account_id=command.account_id,
            category_id=command.category_id,
            note=command.note,
        ))

        account = context.account_by_id(command.account_id)
        values = {
            "monto": MoneyFormatter.format_currency(command.amount, command.currency),
            "categoria": self._category_name(context, command.category_id) or "Sin categoría",
            "cuenta": account.name if account else "Sin cuenta",
        }
        if movement_type == "expense":
            message = f"{RESPONSES['GASTO_REGISTRADO']}\n{interpolate(RESPONSES['RESULTADO_GASTO'], values)}"
        else:
            message = f"{RESPONSES['INGRESO_REGISTRADO']}\n{interpolate(RESPONSES['RESULTADO_INGRESO'], values)}"
        return ActionResult(success=True, message=message,
                            data={"id": movement.id, "amount": command.amount, "date": command.date.isoformat()})

    async def _create_installment_purchase(self, user_id: str, command: ResolvedExpense,
                                           context: UserContext) -> ActionResult:
        """
        Parent purchase plus one movement per cuota.

        If the cuotas cannot be written the parent is deleted again so no
        orphaned purchase survives.
        """
        account = context.account_by_id(command.account_id)
        closing_day = (account.closing_day if account else None) or DEFAULT_CLOSING_DAY
        first = command.first_installment_date or first_installment_date(command.date, closing_day)
        count = command.installments
        cuota = round(command.amount / count)

        purchase = await self.ledger.insert_installment_purchase(InstallmentPurchase(
            user_id=user_id,
            description=command.note or "Compra en cuotas",
            total_amount=command.amount,
            installments=count,
            account_id=command.account_id,
            category_id=command.category_id,
            start_date=first,
        ))

        movements = [
            Movement(
                user_id=user_id,
                type="expense",
                date=add_months(first, i, day=first.day),
                amount=cuota,
                currency=command.currency,
                account_id=command.account_id,
                category_id=command.category_id,
                note=f"{command.note} ({i + 1}/{count})" if command.note else f"Cuota {i + 1}/{count}",
                installment_purchase_id=purchase.id,
                installment_number=i + 1,
                total_installments=count,
            )
            for i in range(count)
        ]
        try:
            await self.ledger.insert_movements(movements)
        except Exception as e:
            logger.error(f"❌ Installment movements failed, rolling back purchase {purchase.id}: {e}")
            try:
                await self.ledger.delete_installment_purchase(user_id, purchase.id)
            except Exception as rollback_error:
                logger.error(f"❌ Could not delete orphaned purchase {purchase.id}: {rollback_error}")
            raise PersistenceError("Failed to write installment movements",
                                   details={"installment_purchase_id": purchase.id})

        values = {
            "cuotas": count,
            "monto_cuota": MoneyFormatter.format_currency(cuota, command.currency),
            "cuenta": account.name if account else "Sin cuenta",
            "resumen": DateFormatter.month_label(first.year, first.month),
        }
        total = MoneyFormatter.format_currency(command.amount, command.currency)
        message = (f"{RESPONSES['CUOTAS_REGISTRADAS']}\n💸 Total: {total}\n"
                   f"{interpolate(RESPONSES['RESULTADO_CUOTAS'], values)}")
        return ActionResult(success=True, message=message,
                            data={"id": purchase.id, "amount": command.amount, "date": first.isoformat()})

    async def _create_transfer(self, user_id: str, command: ResolvedTransfer, context: UserContext) -> ActionResult:
        transfer = await self.ledger.insert_transfer(Transfer(
            user_id=user_id,
            date=command.date,
            from_account_id=command.from_account_id,
            to_account_id=command.to_account_id,
            from_amount=command.amount,
            to_amount=command.amount,
            note=command.note,
        ))
        source = context.account_by_id(command.from_account_id)
        target = context.account_by_id(command.to_account_id)
        details = interpolate(RESPONSES["RESULTADO_TRANSFERENCIA"], {
            "monto": MoneyFormatter.format_currency(command.amount, source.currency if source else "ARS"),
            "cuenta_origen": source.name if source else "?",
            "cuenta_destino": target.name if target else "?",
        })
        return ActionResult(success=True, message=f"{RESPONSES['TRANSFERENCIA_REGISTRADA']}\n{details}",
                            data={"id": transfer.id, "amount": command.amount, "date": command.date.isoformat()})

    async def _pay_card(self, user_id: str, command: ResolvedCardPayment, context: UserContext) -> ActionResult:
        card = context.account_by_id(command.card_id)
        source = context.account_by_id(command.source_account_id)
        label = DateFormatter.statement_label(command.statement_month)
        transfer = await self.ledger.insert_transfer(Transfer(
            user_id=user_id,
            date=command.date,
            from_account_id=command.source_account_id,
            to_account_id=command.card_id,
            from_amount=command.amount,
            to_amount=command.amount,
            note=f"Pago resumen {label}",
        ))
        details = interpolate(RESPONSES["RESULTADO_PAGO_TARJETA"], {
            "monto": MoneyFormatter.format_currency(command.amount, card.currency if card else "ARS"),
            "tarjeta": card.name if card else "?",
            "resumen": label,
            "cuenta": source.name if source else "?",
        })
        return ActionResult(success=True, message=f"{RESPONSES['PAGO_TARJETA_REGISTRADO']}\n{details}",
                            data={"id": transfer.id, "amount": command.amount,
                                  "statement_month": command.statement_month})

    async def _add_stamp_tax(self, user_id: str, command: ResolvedStampTax, context: UserContext) -> ActionResult:
        card = context.account_by_id(command.card_id)
        closing_day = (card.closing_day if card else None) or DEFAULT_CLOSING_DAY
        year, month = parse_statement_key(command.statement_month)
        close_date = statement_close_date(year, month, closing_day)
        label = DateFormatter.statement_label(command.statement_month)

        tax_categories = FuzzyMatcher.find_categories("impuestos", context.categories, "expense")
        category = tax_categories[0].item if tax_categories else \
            FuzzyMatcher.get_default_category(context.categories, "expense")

        movement = await self.ledger.insert_movement(Movement(
            user_id=user_id,
            type="expense",
            date=close_date,
            amount=command.amount,
            currency="ARS",
            account_id=command.card_id,
            category_id=category.id if category else None,
            note=f"Impuesto de sellos - Resumen {label}",
        ))
        details = interpolate(RESPONSES["RESULTADO_SELLOS"], {
            "monto": MoneyFormatter.format_currency(command.amount, "ARS"),
            "tarjeta": card.name if card else "?",
            "resumen": label,
        })
        return ActionResult(success=True, message=f"{RESPONSES['SELLOS_REGISTRADOS']}\n{details}",
                            data={"id": movement.id, "amount": command.amount, "date": close_date.isoformat()})

    # Card statements
    async def statement_movements(self, user_id: str, card: UserAccount, key: str) -> List[Movement]:
        """
        Expenses billed on the statement due in ``key``.

        Regular purchases belong to the statement their date closes into;
        cuotas are already dated inside their statement month.
        """
        closing_day = card.closing_day or DEFAULT_CLOSING_DAY
        year, month = parse_statement_key(key)
        start, _ = month_bounds(*shift_month(year, month, -2))
        _, end = month_bounds(year, month)
        candidates = await self.ledger.query_movements(LedgerFilter(
            user_id=user_id, type="expense", account_id=card.id, start_date=start, end_date=end))

        billed = []
        for movement in candidates:
            if movement.installment_purchase_id:
                in_statement = (movement.date.year, movement.date.month) == (year, month)
            else:
                in_statement = first_installment_month(movement.date, closing_day) == (year, month)
            if in_statement:
                billed.append(movement)
        return billed

    async def statement_total(self, user_id: str, card: UserAccount, key: str) -> float:
        movements = await self.statement_movements(user_id, card, key)
        return round(sum(m.amount for m in movements), 2)

    # Reads
    async def execute_read(self, user_id: str, intent: Intent, entities: ParsedEntities,
                           context: UserContext) -> ActionResult:
        """
        Answer a read query.

        Raises:
            PersistenceError: the ledger could not be read
        """
        logger.info(f"📊 Running {intent.value} for user {user_id}")
        if intent == Intent.CONSULTAR_SALDO:
            return await self.query_balance(user_id, entities, context)
        if intent == Intent.CONSULTAR_GASTOS:
            return await self.query_totals(user_id, "expense", entities, context)
        if intent == Intent.CONSULTAR_INGRESOS:
            return await self.query_totals(user_id, "income", entities, context)
        if intent == Intent.ULTIMOS_MOVIMIENTOS:
            return await self.query_recent(user_id, entities, context)
        if intent == Intent.RESUMEN_MES:
            return await self.query_monthly_summary(user_id, entities, context)
        if intent == Intent.CONSULTAR_RESUMEN_TARJETA:
            return await self.query_card_statement(user_id, entities, context)
        if intent == Intent.CONSULTAR_PRESUPUESTOS:
            return await self.query_budgets(user_id, context)
        if intent == Intent.AYUDA:
            return ActionResult(success=True, message=RESPONSES["HELP"])
        return ActionResult(success=False, message=RESPONSES["NO_ENTENDI"])

    async def query_balance(self, user_id: str, entities: ParsedEntities, context: UserContext) -> ActionResult:
        if not context.accounts:
            return ActionResult(success=False, message=RESPONSES["ERROR_SIN_CUENTAS"])

        if entities.account_id:
            account = context.account_by_id(entities.account_id)
            if not account:
                return ActionResult(success=False, message=RESPONSES["ERROR_CUENTA_NO_ENCONTRADA"])
            balance = await self.ledger.calculate_account_balance(user_id, account.id, account.initial_balance)
            message = (f"{interpolate(RESPONSES['SALDO_CUENTA'], {'cuenta': account.name})}\n\n"
                       f"{MoneyFormatter.format_currency(balance, account.currency)}")
            return ActionResult(success=True, message=message, data={"balance": balance})

        lines = [RESPONSES["SALDO_TOTAL"], ""]
        totals: Dict[str, float] = {"ARS": 0.0, "USD": 0.0}
        for account in context.accounts:
            balance = await self.ledger.calculate_account_balance(user_id, account.id, account.initial_balance)
            totals[account.currency] = totals.get(account.currency, 0.0) + balance
            lines.append(f"{account.icon or '💳'} *{account.name}*\n   "
                         f"{MoneyFormatter.format_currency(balance, account.currency)}")

        lines.append("\n📊 *Total:*")
        for currency, total in totals.items():
            if total != 0:
                lines.append(f"   {MoneyFormatter.format_currency(total, currency)}")
        return ActionResult(success=True, message="\n".join(lines),
                            data={"totals": {k: round(v, 2) for k, v in totals.items()}})

    async def query_totals(self, user_id: str, movement_type: str, entities: ParsedEntities,
                           context: UserContext) -> ActionResult:
        """Spend or income over a period, optionally for one category."""
        today = self.clock()
        start, end = period_to_date_range(entities.period, today)
        movements = await self.ledger.query_movements(LedgerFilter(
            user_id=user_id, type=movement_type, category_id=entities.category_id,
            start_date=start, end_date=end))
        if not movements:
            return ActionResult(success=True, message=RESPONSES["SIN_MOVIMIENTOS"], data={"total": 0, "count": 0})

        period_label = DateFormatter.period_label(entities.period, today)
        category_name = self._category_name(context, entities.category_id)
        prefix = "GASTOS" if movement_type == "expense" else "INGRESOS"
        if category_name:
            header = interpolate(RESPONSES[f"{prefix}_CATEGORIA"], {"categoria": category_name, "periodo": period_label})
        else:
            header = interpolate(RESPONSES[f"{prefix}_PERIODO"], {"periodo": period_label})

        totals = group_totals(movements)
        icon = "💸" if movement_type == "expense" else "💰"
        lines = [header, ""]
        for currency, total in totals.items():
            lines.append(f"{icon} *Total: {MoneyFormatter.format_currency(total, currency)}*")
        lines.append(f"📋 {len(movements)} movimientos")
        lines.append("")
        lines.append("*Últimos gastos:*" if movement_type == "expense" else "*Últimos ingresos:*")
        for m in movements[:TOP_ITEMS]:
            lines.append(f"• {MoneyFormatter.format_currency(m.amount, m.currency)} - "
                         f"{self._category_name(context, m.category_id) or 'Sin categoría'} "
                         f"({DateFormatter.format_date_display(m.date, today)})")

        return ActionResult(success=True, message="\n".join(lines),
                            data={"total": round(sum(totals.values()), 2), "count": len(movements),
                                  "start_date": start.isoformat(), "end_date": end.isoformat()})

    async def query_recent(self, user_id: str, entities: ParsedEntities, context: UserContext) -> ActionResult:
        today = self.clock()
        limit = min(entities.limit or DEFAULT_LIMIT, MAX_RECENT)
        movements = await self.ledger.query_movements(LedgerFilter(user_id=user_id, limit=limit))
        transfers = await self.ledger.query_transfers(LedgerFilter(user_id=user_id, limit=limit))
        rows = sort_newest_first(movements + transfers)[:limit]
        if not rows:
            return ActionResult(success=True, message=RESPONSES["SIN_MOVIMIENTOS"], data={"count": 0})

        lines = [interpolate(RESPONSES["ULTIMOS_MOVIMIENTOS"], {"n": len(rows)})]
        for row in rows:
            when = DateFormatter.format_date_display(row.date, today)
            if isinstance(row, Transfer):
                source = context.account_by_id(row.from_account_id)
                lines.append(interpolate(RESPONSES["MOVIMIENTO_ITEM_TRANSFERENCIA"], {
                    "monto": MoneyFormatter.format_currency(row.from_amount, source.currency if source else "ARS"),
                    "fecha": when,
                    "origen": source.name if source else "?",
                    "destino": self._account_name(context, row.to_account_id) or "?",
                }))
            else:
                key = "MOVIMIENTO_ITEM_INGRESO" if row.type == "income" else "MOVIMIENTO_ITEM_GASTO"
                lines.append(interpolate(RESPONSES[key], {
                    "monto": MoneyFormatter.format_currency(row.amount, row.currency),
                    "categoria": self._category_name(context, row.category_id) or "Sin categoría",
                    "fecha": when,
                    "cuenta": self._account_name(context, row.account_id) or "",
                }))
        return ActionResult(success=True, message="\n".join(lines), data={"count": len(rows)})

    async def query_monthly_summary(self, user_id: str, entities: ParsedEntities,
                                    context: UserContext) -> ActionResult:
        today = self.clock()
        if entities.period:
            start, end = period_to_date_range(entities.period, today)
        else:
            start, end = month_bounds(today.year, today.month)
        movements = await self.ledger.query_movements(LedgerFilter(user_id=user_id, start_date=start, end_date=end))

        # Totals per currency; category shares are over ARS spending
        totals: Dict[str, Dict[str, float]] = {}
        by_category: Dict[str, float] = {}
        for m in movements:
            currency_totals = totals.setdefault(m.currency, {"income": 0.0, "expense": 0.0})
            currency_totals[m.type] += m.amount
            if m.type == "expense" and m.currency == "ARS":
                name = self._category_name(context, m.category_id) or "Sin categoría"
                by_category[name] = by_category.get(name, 0.0) + m.amount

        ars = totals.get("ARS", {"income": 0.0, "expense": 0.0})
        income, expense = ars["income"], ars["expense"]
        balance = income - expense
        lines = [
            interpolate(RESPONSES["RESUMEN_MES"], {"mes": DateFormatter.month_label(start.year, start.month)}),
            "",
            f"💰 *Ingresos:* {MoneyFormatter.format_currency(income)}",
            f"💸 *Gastos:* {MoneyFormatter.format_currency(expense)}",
            f"{'📈' if balance >= 0 else '📉'} *Balance:* {MoneyFormatter.format_currency(balance)}",
        ]
        for currency, values in totals.items():
            if currency == "ARS":
                continue
            lines.append("")
            lines.append(f"💵 *{currency}:* +{MoneyFormatter.format_currency(values['income'], currency)} | "
                         f"-{MoneyFormatter.format_currency(values['expense'], currency)}")
        top = sorted(by_category.items(), key=lambda item: item[1], reverse=True)[:TOP_ITEMS]
        if top:
            lines.append("")
            lines.append("*Top gastos por categoría:*")
            for name, amount in top:
                share = round(amount / expense * 100) if expense > 0 else 0
                lines.append(f"• {name}: {MoneyFormatter.format_currency(amount)} ({share}%)")

        return ActionResult(success=True, message="\n".join(lines), data={
            "income": round(income, 2), "expense": round(expense, 2), "balance": round(balance, 2),
            "by_currency": {c: {k: round(v, 2) for k, v in values.items()} for c, values in totals.items()},
            "top_categories": [{"name": n, "amount": round(a, 2)} for n, a in top],
        })

    async def query_card_statement(self, user_id: str, entities: ParsedEntities,
                                   context: UserContext) -> ActionResult:
        if not context.credit_cards:
            return ActionResult(success=False, message=RESPONSES["ERROR_SIN_TARJETAS"])
        card = context.account_by_id(entities.target_card_id) or \
            (context.credit_cards[0] if len(context.credit_cards) == 1 else None)
        if card is None:
            return ActionResult(success=False, message=RESPONSES["ERROR_CUENTA_NO_ENCONTRADA"])

        today = self.clock()
        key = resolve_statement_month(entities.statement_month, card, today)
        label = DateFormatter.statement_label(key)
        movements = await self.statement_movements(user_id, card, key)
        if not movements:
            return ActionResult(success=True, message=interpolate(
                RESPONSES["RESUMEN_TARJETA_VACIO"], {"tarjeta": card.name, "resumen": label}),
                data={"total": 0, "statement_month": key})

        total = round(sum(m.amount for m in movements), 2)
        year, month = parse_statement_key(key)
        close_date = statement_close_date(year, month, card.closing_day or DEFAULT_CLOSING_DAY)
        lines = [
            interpolate(RESPONSES["RESUMEN_TARJETA"], {"tarjeta": card.name, "resumen": label}),
            "",
            f"💸 *Total: {MoneyFormatter.format_currency(total, card.currency)}*",
            f"📋 {len(movements)} consumos | 🔒 Cierre: {DateFormatter.format_date(close_date)}",
            "",
        ]
        for m in sorted(movements, key=lambda m: m.date):
            description = m.note or self._category_name(context, m.category_id) or "Consumo"
            lines.append(f"• {MoneyFormatter.format_currency(m.amount, m.currency)} - {description} "
                         f"({DateFormatter.format_date_display(m.date, today)})")
        return ActionResult(success=True, message="\n".join(lines),
                            data={"total": total, "count": len(movements), "statement_month": key})

    async def query_budgets(self, user_id: str, context: UserContext) -> ActionResult:
        budgets = await self.ledger.list_budgets(user_id)
        if not budgets:
            return ActionResult(success=True, message=RESPONSES["SIN_PRESUPUESTOS"], data={"count": 0})

        today = self.clock()
        start, end = month_bounds(today.year, today.month)
        expenses = await self.ledger.query_movements(LedgerFilter(
            user_id=user_id, type="expense", start_date=start, end_date=end))
        spent_by_category: Dict[str, float] = {}
        for m in expenses:
            if m.category_id:
                spent_by_category[m.category_id] = spent_by_category.get(m.category_id, 0.0) + m.amount

        lines = [interpolate(RESPONSES["PRESUPUESTOS"], {"mes": DateFormatter.month_label(today.year, today.month)}), ""]
        summary = []
        for budget in budgets:
            spent = spent_by_category.get(budget.category_id, 0.0)
            share = round(spent / budget.amount * 100) if budget.amount > 0 else 0
            icon = "🟢" if share < 80 else "🟡" if share < 100 else "🔴"
            name = self._category_name(context, budget.category_id) or "Sin categoría"
            lines.append(f"{icon} {name}: {MoneyFormatter.format_currency(spent)} / "
                         f"{MoneyFormatter.format_currency(budget.amount)} ({share}%)")
            summary.append({"category_id": budget.category_id, "spent": round(spent, 2),
                            "limit": budget.amount, "percent": share})
        return ActionResult(success=True, message="\n".join(lines), data={"budgets": summary})

    # Helpers
    @staticmethod
    def _category_name(context: UserContext, category_id: Optional[str]) -> Optional[str]:
        category = context.category_by_id(category_id)
        return f"{category.icon or ''} {category.name}".strip() if category else None

    @staticmethod
    def _account_name(context: UserContext, account_id: Optional[str]) -> Optional[str]:
        account = context.account_by_id(account_id)
        return account.name if account else None
