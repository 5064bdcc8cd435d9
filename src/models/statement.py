"""
Statement parsing models: format tags, parse results and account metrics.
"""
import enum
from decimal import Decimal
from typing import List, Optional, Dict, Any

from pydantic import BaseModel, Field, ConfigDict

from models.trade import TradeRecord


class StatementFormat(str, enum.Enum):
    """Enum for the statement formats the parsers understand"""
    CSV = "csv"
    MT4_CSV = "mt4Csv"
    MT4_HTML = "mt4Html"
    CTRADER = "cTrader"
    DXTRADE = "dxTrade"
    MATCH_TRADER = "matchTrader"
    RITHMIC = "rithmic"
    TRADING_VIEW = "tradingView"
    DASHBOARD_HTML = "dashboardHtml"
    PDF = "pdf"


class ParseError(BaseModel):
    """A parse failure; line is 1-based, or 0 for document-level failures."""
    line: int = Field(ge=0)
    error: str


class ParseResult(BaseModel):
    """Trades and errors produced by one parser run over one document."""
    trades: List[TradeRecord] = Field(default_factory=list)
    errors: List[ParseError] = Field(default_factory=list)
    format: str

    def add_error(self, line: int, error: str) -> None:
        self.errors.append(ParseError(line=line, error=error))


class AccountMetrics(BaseModel):
    """
    Account-level figures scraped alongside trades.

    total_profit_loss is always the sum of the parsed trades' P&L, the other
    figures are only present when the source document exposes them.
    """
    balance: Optional[Decimal] = None
    equity: Optional[Decimal] = None
    profit_target: Optional[Decimal] = Field(default=None, alias="profitTarget")
    daily_loss_limit: Optional[Decimal] = Field(default=None, alias="dailyLossLimit")
    max_drawdown: Optional[Decimal] = Field(default=None, alias="maxDrawdown")
    total_profit_loss: Decimal = Field(default=Decimal("0"), alias="totalProfitLoss")

    model_config = ConfigDict(populate_by_name=True)

    def to_response(self) -> Dict[str, Any]:
        """camelCase dictionary for API responses (Decimals left for the JSON encoder)."""
        return self.model_dump(by_alias=True, exclude_none=True)
