"""MCPツールハンドラー。

MCPツールの呼び出しを受け取り、実際の処理（業務データのモック操作、四則演算）を実行します。
ハンドラーはMCP SDKに依存しないため、単体でテストできます。
"""

import copy
import json
import logging
import random
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


# モックデータベース
MOCK_CUSTOMERS: dict[str, dict[str, str]] = {
    "cust_001": {"name": "Alice", "email": "alice@example.com", "status": "VIP"},
    "cust_002": {"name": "Bob", "email": "bob@example.com", "status": "Regular"},
}

MOCK_INVENTORY: dict[str, int] = {
    "prod_abc": 150,
    "prod_xyz": 5,
}


@dataclass
class ToolResult:
    """ツール実行結果

    Attributes:
        text: クライアントに返すテキスト
        is_error: エラー結果かどうか
    """
    text: str
    is_error: bool = False


@dataclass
class ToolDefinition:
    """MCPツール定義（名前・説明・入力スキーマ）"""
    name: str
    description: str
    input_schema: dict[str, Any]


class BaseToolHandler:
    """MCPツールハンドラーの基底クラス

    サブクラスはDEFINITIONSを定義し、ツール名と同名の非同期メソッドを実装します。
    """

    DEFINITIONS: list[ToolDefinition] = []

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__module__)
        self._definitions = {d.name: d for d in self.DEFINITIONS}

    def definitions(self) -> list[ToolDefinition]:
        """ツール定義の一覧を返す"""
        return list(self.DEFINITIONS)

    async def handle_tool_call(self, name: str, arguments: dict[str, Any] | None) -> ToolResult:
        """ツール呼び出しを処理します。

        引数の入力スキーマ検証はMCP SDKのcall_toolが行うため、
        ここでは検証済みの引数を受け取る前提です。

        Args:
            name: ツール名
            arguments: ツール引数

        Returns:
            ToolResult: 実行結果

        Raises:
            ValueError: 未知のツール名の場合
        """
        arguments = arguments or {}
        self.logger.info(f"ツール呼び出し: {name}, 引数: {arguments}")

        definition = self._definitions.get(name)
        if definition is None:
            raise ValueError(f"Unknown tool: {name}")

        # スキーマに無い引数は無視する
        known = definition.input_schema.get("properties", {})
        kwargs = {k: v for k, v in arguments.items() if k in known}
        return await getattr(self, name)(**kwargs)


class BusinessToolHandler(BaseToolHandler):
    """業務データ（顧客・在庫・注文）のモックツールハンドラー

    顧客テーブルと在庫テーブルはインスタンスごとのコピーを保持し、
    注文によって在庫数が減少します。
    """

    DEFINITIONS = [
        ToolDefinition(
            name="query_customer_data",
            description="Retrieve detailed customer information by ID",
            input_schema={
                "type": "object",
                "properties": {
                    "customerId": {
                        "type": "string",
                        "description": "The ID of the customer to query",
                    },
                },
                "required": ["customerId"],
            },
        ),
        ToolDefinition(
            name="check_inventory",
            description="Check the stock level of a product",
            input_schema={
                "type": "object",
                "properties": {
                    "productId": {
                        "type": "string",
                        "description": "The ID of the product to check",
                    },
                },
                "required": ["productId"],
            },
        ),
        ToolDefinition(
            name="create_order",
            description="Place a new order for a customer",
            input_schema={
                "type": "object",
                "properties": {
                    "customerId": {"type": "string"},
                    "productId": {"type": "string"},
                    "quantity": {"type": "integer", "exclusiveMinimum": 0},
                },
                "required": ["customerId", "productId", "quantity"],
            },
        ),
    ]

    def __init__(
        self,
        customers: dict[str, dict[str, str]] | None = None,
        inventory: dict[str, int] | None = None
    ):
        """初期化

        Args:
            customers: 顧客テーブル（省略時はモックデータのコピー）
            inventory: 在庫テーブル（省略時はモックデータのコピー）
        """
        super().__init__()
        self.customers = copy.deepcopy(MOCK_CUSTOMERS if customers is None else customers)
        self.inventory = dict(MOCK_INVENTORY if inventory is None else inventory)

    async def query_customer_data(self, customerId: str) -> ToolResult:
        """顧客情報を取得する"""
        customer = self.customers.get(customerId)
        if customer is None:
            return ToolResult(text=f"Customer {customerId} not found.", is_error=True)
        return ToolResult(text=json.dumps(customer, indent=2, ensure_ascii=False))

    async def check_inventory(self, productId: str) -> ToolResult:
        """在庫数を確認する"""
        stock = self.inventory.get(productId)
        if stock is None:
            return ToolResult(text=f"Product {productId} not found.", is_error=True)
        return ToolResult(text=f"Current stock for {productId}: {stock}")

    async def create_order(self, customerId: str, productId: str, quantity: int) -> ToolResult:
        """注文を作成し、在庫を減らす"""
        # JSON Schemaのintegerは2.0のような整数値のfloatも受け付ける
        quantity = int(quantity)
        if customerId not in self.customers:
            return ToolResult(text="Invalid Customer", is_error=True)

        current_stock = self.inventory.get(productId)
        if current_stock is None or current_stock < quantity:
            return ToolResult(text="Insufficient Stock", is_error=True)

        self.inventory[productId] = current_stock - quantity
        order_id = f"ord_{random.randrange(10000)}"
        self.logger.info(
            f"注文を作成しました: {order_id} ({customerId}, {productId} x {quantity})"
        )

        return ToolResult(
            text=(
                f"Order placed successfully! Order ID: {order_id}. "
                f"Remaining stock: {self.inventory[productId]}"
            )
        )


def _format_number(value: float) -> str:
    """計算結果を文字列化する（整数値の場合は小数点を付けない）"""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _operands_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "a": {"type": "number", "description": "First number"},
            "b": {"type": "number", "description": "Second number"},
        },
        "required": ["a", "b"],
    }


class MathToolHandler(BaseToolHandler):
    """四則演算ツールハンドラー"""

    DEFINITIONS = [
        ToolDefinition("add", "Add two numbers", _operands_schema()),
        ToolDefinition("subtract", "Subtract two numbers (a - b)", _operands_schema()),
        ToolDefinition("multiply", "Multiply two numbers", _operands_schema()),
        ToolDefinition("divide", "Divide two numbers (a / b)", _operands_schema()),
    ]

    async def add(self, a: float, b: float) -> ToolResult:
        return ToolResult(text=_format_number(a + b))

    async def subtract(self, a: float, b: float) -> ToolResult:
        return ToolResult(text=_format_number(a - b))

    async def multiply(self, a: float, b: float) -> ToolResult:
        return ToolResult(text=_format_number(a * b))

    async def divide(self, a: float, b: float) -> ToolResult:
        if b == 0:
            return ToolResult(text="Division by zero is not allowed", is_error=True)
        return ToolResult(text=_format_number(a / b))
