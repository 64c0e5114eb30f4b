from __future__ import annotations

import random
import time
from typing import Callable

from execution.intents import TradeIntent
from risk.metrics import leverage_factor, step_performance, unrealized_pnl
from state.ledger import LedgerStore
from state.models import (
    Account,
    Position,
    PositionSide,
    Trade,
    TradeSide,
    TradingMode,
    new_id,
    trading_mode_from,
)
from utils.errors import InsufficientFunds, InsufficientHoldings, PositionNotFound
from utils.logger import get_logger, log_extra


logger = get_logger("ledger.positions")

PriceLookup = Callable[[str], float]


class PositionLifecycleEngine:
    """Turns trade intents into ledger transitions.

    All three operations re-validate against the account state they are about
    to mutate and run inside a single ledger transaction.
    """

    def __init__(
        self,
        ledger: LedgerStore,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.ledger = ledger
        self._rng = rng or random.Random()
        self._clock = clock

    def open_position(self, mode: TradingMode | str, intent: TradeIntent) -> Position | Trade:
        mode = trading_mode_from(mode)
        with self.ledger.transaction(mode) as account:
            if intent.side is TradeSide.BUY:
                result: Position | Trade = self._open_long(account, intent)
            elif mode is TradingMode.FUTURE:
                result = self._open_short(account, intent)
            else:
                result = self._sell_holding(account, intent)
        log_extra(
            logger,
            "trade executed",
            trading_mode=mode.value,
            instrument_id=intent.instrument_id,
            side=intent.side.value,
            price=intent.price,
            amount=intent.amount,
            result_type=type(result).__name__,
        )
        return result

    def mark_to_market(self, mode: TradingMode | str, price_lookup: PriceLookup) -> list[Position]:
        mode = trading_mode_from(mode)
        with self.ledger.transaction(mode) as account:
            for position in account.open_positions:
                self._mark(account, position, price_lookup)
            account.performance = step_performance(account.performance, mode, self._rng)
            positions = list(account.open_positions)
        logger.debug("marked %d positions", len(positions), extra={"trading_mode": mode.value})
        return positions

    def mark_all(self, price_lookup: PriceLookup) -> None:
        for mode in TradingMode:
            self.mark_to_market(mode, price_lookup)

    def close_position(
        self,
        mode: TradingMode | str,
        position_id: str,
        price_lookup: PriceLookup | None = None,
    ) -> Trade:
        mode = trading_mode_from(mode)
        with self.ledger.transaction(mode) as account:
            index = account.position_index(position_id)
            if index is None:
                raise PositionNotFound(position_id)
            position = account.open_positions[index]
            if price_lookup is not None:
                self._mark(account, position, price_lookup)
            account.balance += position.unrealized_pnl
            if position.side is PositionSide.LONG:
                account.debit_asset(position.instrument_id, position.amount)
            del account.open_positions[index]
            closing = Trade(
                trade_id=new_id(),
                strategy_id=position.strategy_id,
                instrument_id=position.instrument_id,
                side=TradeSide.SELL,
                price=position.mark_price or position.entry_price,
                amount=position.amount,
                timestamp=int(self._clock()),
                trading_mode=mode,
                leverage=position.leverage,
                pnl=position.unrealized_pnl,
            )
            account.closed_trades.append(closing)
        log_extra(
            logger,
            "position closed",
            trading_mode=mode.value,
            position_id=position_id,
            price=closing.price,
            pnl=closing.pnl,
        )
        return closing

    def _open_long(self, account: Account, intent: TradeIntent) -> Position:
        cost = intent.notional
        if cost > account.balance:
            raise InsufficientFunds(required=cost, available=account.balance)
        account.balance -= cost
        account.credit_asset(intent.instrument_id, intent.amount)
        position = self._new_position(account, intent, PositionSide.LONG)
        account.open_positions.append(position)
        return position

    def _open_short(self, account: Account, intent: TradeIntent) -> Position:
        position = self._new_position(account, intent, PositionSide.SHORT)
        account.open_positions.append(position)
        return position

    def _sell_holding(self, account: Account, intent: TradeIntent) -> Trade:
        held = account.held(intent.instrument_id)
        if held < intent.amount:
            raise InsufficientHoldings(intent.instrument_id, required=intent.amount, held=held)
        account.debit_asset(intent.instrument_id, intent.amount)
        account.balance += intent.notional
        trade = Trade(
            trade_id=new_id(),
            strategy_id=intent.strategy_id,
            instrument_id=intent.instrument_id,
            side=TradeSide.SELL,
            price=intent.price,
            amount=intent.amount,
            timestamp=int(self._clock()),
            trading_mode=account.trading_mode,
            leverage=intent.leverage,
        )
        account.closed_trades.append(trade)
        return trade

    def _new_position(self, account: Account, intent: TradeIntent, side: PositionSide) -> Position:
        return Position(
            position_id=new_id(),
            strategy_id=intent.strategy_id,
            instrument_id=intent.instrument_id,
            side=side,
            entry_price=intent.price,
            amount=intent.amount,
            timestamp=int(self._clock()),
            trading_mode=account.trading_mode,
            leverage=intent.leverage,
            mark_price=intent.price,
            unrealized_pnl=0.0,
        )

    def _mark(self, account: Account, position: Position, price_lookup: PriceLookup) -> None:
        try:
            price = price_lookup(position.instrument_id)
        except LookupError:
            logger.debug("no price for %s, keeping last mark", position.instrument_id)
            return
        if price is None:
            return
        position.mark_price = float(price)
        position.unrealized_pnl = unrealized_pnl(
            position,
            position.mark_price,
            leverage_factor(position, account.leverage),
        )
