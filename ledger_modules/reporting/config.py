"""
Reporting Configuration Schema.

Statements bucket accounts by their free-form ``category`` and
``sub_category`` labels.  The defaults follow the standard Japanese chart
of accounts (流動資産, 売上高, 販売費 ...); an organization with a different
chart overrides the label sets through ``from_dict`` or ``from_yaml``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Self

import yaml

from ledger_kernel.logging_config import get_logger

logger = get_logger("modules.reporting.config")


@dataclass
class AccountClassification:
    """
    Rules for classifying accounts into financial statement sections.

    Label matching: an account belongs to a section if its category (or,
    for cash accounts, its sub_category) is one of the configured labels.
    """

    # Balance sheet -- assets
    current_asset_categories: tuple[str, ...] = ("流動資産",)
    fixed_asset_categories: tuple[str, ...] = ("固定資産",)
    deferred_asset_categories: tuple[str, ...] = ("繰延資産",)

    # Balance sheet -- liabilities
    current_liability_categories: tuple[str, ...] = ("流動負債",)
    fixed_liability_categories: tuple[str, ...] = ("固定負債",)

    # Balance sheet -- equity
    capital_categories: tuple[str, ...] = ("資本金",)
    retained_earnings_categories: tuple[str, ...] = ("利益剰余金",)

    # Income statement -- revenue
    sales_revenue_categories: tuple[str, ...] = ("売上高",)
    non_operating_income_categories: tuple[str, ...] = ("営業外収益",)
    extraordinary_gain_categories: tuple[str, ...] = ("特別利益",)

    # Income statement -- expenses
    cost_of_sales_categories: tuple[str, ...] = ("売上原価",)
    selling_expense_categories: tuple[str, ...] = ("販売費",)
    administrative_expense_categories: tuple[str, ...] = ("一般管理費",)
    non_operating_expense_categories: tuple[str, ...] = ("営業外費用",)
    extraordinary_loss_categories: tuple[str, ...] = ("特別損失",)
    tax_expense_categories: tuple[str, ...] = ("法人税等",)

    # Cash flow -- cash and cash equivalents are found by sub_category
    cash_sub_categories: tuple[str, ...] = ("現金", "預金", "現金同等物")
    investing_categories: tuple[str, ...] = ("固定資産", "投資有価証券")
    financing_categories: tuple[str, ...] = ("借入金", "資本金", "配当金")

    def __post_init__(self):
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, str):
                value = (value,)
            value = tuple(value)
            if not value:
                raise ValueError(f"{f.name} must contain at least one label")
            setattr(self, f.name, value)

        self._check_disjoint(
            "balance sheet",
            (
                "current_asset_categories",
                "fixed_asset_categories",
                "deferred_asset_categories",
                "current_liability_categories",
                "fixed_liability_categories",
                "capital_categories",
                "retained_earnings_categories",
            ),
        )
        self._check_disjoint(
            "income statement",
            (
                "sales_revenue_categories",
                "non_operating_income_categories",
                "extraordinary_gain_categories",
                "cost_of_sales_categories",
                "selling_expense_categories",
                "administrative_expense_categories",
                "non_operating_expense_categories",
                "extraordinary_loss_categories",
                "tax_expense_categories",
            ),
        )
        self._check_disjoint(
            "cash flow", ("investing_categories", "financing_categories"),
        )

    def _check_disjoint(self, statement: str, names: tuple[str, ...]) -> None:
        seen: dict[str, str] = {}
        for name in names:
            for label in getattr(self, name):
                if label in seen:
                    raise ValueError(
                        f"{statement} label {label!r} is assigned to both "
                        f"{seen[label]} and {name}"
                    )
                seen[label] = name

    @staticmethod
    def matches(label: str | None, labels: tuple[str, ...]) -> bool:
        """Check if a category label is one of the given labels."""
        return label is not None and label in labels


@dataclass
class ReportingConfig:
    """
    Configuration schema for the reporting module.

    Controls account classification and report metadata.
    """

    # Classification rules
    classification: AccountClassification = field(
        default_factory=AccountClassification,
    )

    # Label printed in report metadata.  Amounts are never converted.
    currency: str = "JPY"

    # Entity name shown on reports
    entity_name: str = "Company"

    # Whether to list accounts whose balance is zero
    include_zero_balances: bool = False

    def __post_init__(self):
        if not self.entity_name.strip():
            raise ValueError("entity_name cannot be empty")

    @classmethod
    def with_defaults(cls) -> Self:
        """Create config with standard defaults."""
        logger.info("reporting_config_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict) -> Self:
        """Create config from dictionary."""
        data = dict(data)
        if "classification" in data and isinstance(data["classification"], dict):
            data["classification"] = AccountClassification(**data["classification"])
        logger.info(
            "reporting_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """
        Load config from a YAML file.

        The file holds the same mapping ``from_dict`` accepts.  An empty
        file yields the defaults.
        """
        path = Path(path)
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path} must contain a mapping at the top level")
        logger.info("reporting_config_loading_from_yaml", extra={"path": str(path)})
        return cls.from_dict(data)
