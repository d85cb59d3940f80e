"""Initial shopledger schema

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial"
down_revision = None
branch_labels = None
depends_on = None


def _updated_at():
    return sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False)


def _timestamps(*, updated=True):
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False)]
    if updated:
        cols.append(_updated_at())
    return cols


def upgrade():
    # ------------------------------------------------------------------
    # Masters
    # ------------------------------------------------------------------
    op.create_table(
        "shops",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("formal_name", sa.String(length=255), nullable=True),
        sa.Column("kana", sa.String(length=255), nullable=True),
        sa.Column("zip", sa.String(length=16), nullable=True),
        sa.Column("prefecture", sa.String(length=32), nullable=True),
        sa.Column("city", sa.String(length=128), nullable=True),
        sa.Column("address1", sa.String(length=255), nullable=True),
        sa.Column("address2", sa.String(length=255), nullable=True),
        sa.Column("tel", sa.String(length=32), nullable=True),
        sa.Column("fax", sa.String(length=32), nullable=True),
        sa.Column("role", sa.String(length=32), nullable=True),
        sa.Column("hidden", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_shops_code", "shops", ["code"], unique=True)
    op.create_index("ix_shops_hidden", "shops", ["hidden"], unique=False)

    op.create_table(
        "suppliers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_suppliers_code", "suppliers", ["code"], unique=True)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("kana", sa.String(length=255), nullable=True),
        sa.Column("abbr", sa.String(length=64), nullable=True),
        sa.Column("selling_price", sa.Integer(), nullable=True),
        sa.Column("cost_price", sa.Integer(), nullable=True),
        sa.Column("avg_cost_price", sa.Integer(), nullable=True),
        sa.Column("selling_tax", sa.Integer(), nullable=True),
        sa.Column("selling_tax_class", sa.String(length=16), nullable=True),
        sa.Column("supplier_code", sa.String(length=32), nullable=True),
        sa.Column("hidden", sa.Boolean(), nullable=False),
        sa.Column("no_return", sa.Boolean(), nullable=False),
        sa.Column("unregistered", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_products_code", "products", ["code"], unique=True)
    op.create_index("ix_products_supplier", "products", ["supplier_code"], unique=False)

    op.create_table(
        "shop_product_prices",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shop_code", sa.String(length=32), nullable=False),
        sa.Column("product_code", sa.String(length=32), nullable=False),
        sa.Column("product_name", sa.String(length=255), nullable=True),
        sa.Column("final_cost_price", sa.Integer(), nullable=True),
        sa.Column("selling_price", sa.Integer(), nullable=True),
        _updated_at(),
        sa.ForeignKeyConstraint(["shop_code"], ["shops.code"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("shop_code", "product_code", name="uq_shop_product_prices"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_shop_product_prices_shop_code", "shop_product_prices", ["shop_code"], unique=False)
    op.create_index("ix_shop_product_prices_product_code", "shop_product_prices", ["product_code"], unique=False)

    # ------------------------------------------------------------------
    # Stock movement documents
    # ------------------------------------------------------------------
    for table, extra_cols in (
        ("purchases", [sa.Column("supplier_code", sa.String(length=32), nullable=True)]),
        ("deliveries", [sa.Column("dest_shop_code", sa.String(length=32), nullable=True)]),
        ("rejections", [
            sa.Column("kind", sa.String(length=16), nullable=False),
            sa.Column("supplier_code", sa.String(length=32), nullable=True),
        ]),
    ):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("shop_code", sa.String(length=32), nullable=False),
            sa.Column("number", sa.Integer(), nullable=False),
            sa.Column("date", sa.Date(), nullable=False),
            *extra_cols,
            *_timestamps(),
            sa.ForeignKeyConstraint(["shop_code"], ["shops.code"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("shop_code", "number", name=f"uq_{table}_shop_number"),
            sqlite_autoincrement=True,
        )
        op.create_index(f"ix_{table}_shop_code", table, ["shop_code"], unique=False)
        op.create_index(f"ix_{table}_date", table, ["date"], unique=False)
        op.create_index(f"ix_{table}_shop_date", table, ["shop_code", "date"], unique=False)

    for table, fk_col, parent in (
        ("purchase_details", "purchase_id", "purchases"),
        ("delivery_details", "delivery_id", "deliveries"),
        ("rejection_details", "rejection_id", "rejections"),
    ):
        op.create_table(
            table,
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column(fk_col, sa.Integer(), nullable=False),
            sa.Column("product_code", sa.String(length=32), nullable=False),
            sa.Column("product_name", sa.String(length=255), nullable=True),
            sa.Column("quantity", sa.Integer(), nullable=False),
            sa.Column("cost_price", sa.Integer(), nullable=True),
            sa.ForeignKeyConstraint([fk_col], [f"{parent}.id"]),
            sa.PrimaryKeyConstraint("id"),
            sqlite_autoincrement=True,
        )
        op.create_index(f"ix_{table}_{fk_col}", table, [fk_col], unique=False)
        op.create_index(f"ix_{table}_product", table, ["product_code"], unique=False)

    op.create_table(
        "sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("value", sa.Integer(), nullable=False),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sequences_name", "sequences", ["name"], unique=True)

    op.create_table(
        "counters",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("all_count", sa.Integer(), nullable=False),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_counters_name", "counters", ["name"], unique=True)

    # ------------------------------------------------------------------
    # Stock
    # ------------------------------------------------------------------
    op.create_table(
        "stocks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shop_code", sa.String(length=32), nullable=False),
        sa.Column("product_code", sa.String(length=32), nullable=False),
        sa.Column("product_name", sa.String(length=255), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        _updated_at(),
        sa.ForeignKeyConstraint(["shop_code"], ["shops.code"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("shop_code", "product_code", name="uq_stocks_shop_product"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_stocks_shop_code", "stocks", ["shop_code"], unique=False)
    op.create_index("ix_stocks_product", "stocks", ["product_code"], unique=False)

    op.create_table(
        "monthly_stocks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shop_code", sa.String(length=32), nullable=False),
        sa.Column("month", sa.String(length=6), nullable=False),
        sa.Column("product_code", sa.String(length=32), nullable=False),
        sa.Column("product_name", sa.String(length=255), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        _updated_at(),
        sa.ForeignKeyConstraint(["shop_code"], ["shops.code"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("shop_code", "month", "product_code", name="uq_monthly_stocks_shop_month_product"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_monthly_stocks_shop_code", "monthly_stocks", ["shop_code"], unique=False)
    op.create_index("ix_monthly_stocks_month", "monthly_stocks", ["month"], unique=False)

    op.create_table(
        "inventories",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shop_code", sa.String(length=32), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("fixed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["shop_code"], ["shops.code"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("shop_code", "date", name="uq_inventories_shop_date"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventories_shop_code", "inventories", ["shop_code"], unique=False)
    op.create_index("ix_inventories_date", "inventories", ["date"], unique=False)

    op.create_table(
        "inventory_details",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("inventory_id", sa.Integer(), nullable=False),
        sa.Column("product_code", sa.String(length=32), nullable=False),
        sa.Column("product_name", sa.String(length=255), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("cost_price", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["inventory_id"], ["inventories.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("inventory_id", "product_code", name="uq_inventory_details_product"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_details_inventory_id", "inventory_details", ["inventory_id"], unique=False)
    op.create_index("ix_inventory_details_product_code", "inventory_details", ["product_code"], unique=False)

    # ------------------------------------------------------------------
    # Sales & registers
    # ------------------------------------------------------------------
    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shop_code", sa.String(length=32), nullable=False),
        sa.Column("code", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("payment_type", sa.String(length=16), nullable=False),
        sa.Column("sales_total", sa.Integer(), nullable=False),
        sa.Column("tax_total", sa.Integer(), nullable=False),
        sa.Column("discount_total", sa.Integer(), nullable=False),
        *_timestamps(updated=False),
        sa.ForeignKeyConstraint(["shop_code"], ["shops.code"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("shop_code", "code", name="uq_sales_shop_code"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sales_shop_code", "sales", ["shop_code"], unique=False)
    op.create_index("ix_sales_shop_created", "sales", ["shop_code", "created_at"], unique=False)

    op.create_table(
        "sale_details",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("line_index", sa.Integer(), nullable=False),
        sa.Column("product_code", sa.String(length=32), nullable=False),
        sa.Column("product_name", sa.String(length=255), nullable=True),
        sa.Column("division", sa.String(length=4), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("selling_price", sa.Integer(), nullable=False),
        sa.Column("selling_tax", sa.Integer(), nullable=True),
        sa.Column("selling_tax_class", sa.String(length=16), nullable=True),
        sa.Column("discount", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sale_id", "line_index", name="uq_sale_details_sale_line"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_sale_details_sale_id", "sale_details", ["sale_id"], unique=False)
    op.create_index("ix_sale_details_product_division", "sale_details", ["product_code", "division"], unique=False)

    op.create_table(
        "register_statuses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shop_code", sa.String(length=32), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("opened_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["shop_code"], ["shops.code"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("shop_code", "date", name="uq_register_statuses_shop_date"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_register_statuses_shop_code", "register_statuses", ["shop_code"], unique=False)
    op.create_index("ix_register_statuses_shop_opened", "register_statuses", ["shop_code", "opened_at"], unique=False)

    # ------------------------------------------------------------------
    # Settings & auth
    # ------------------------------------------------------------------
    op.create_table(
        "app_configs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("value_json", sa.JSON(), nullable=False),
        _updated_at(),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_app_configs_key", "app_configs", ["key"], unique=True)

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_users_email"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_users_username", "users", ["username"], unique=False)

    op.create_table(
        "roles",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(updated=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "user_roles",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("role_id", sa.Integer(), nullable=False),
        sa.Column("assigned_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["role_id"], ["roles.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "role_id", name="uq_user_roles"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_user_roles_user_id", "user_roles", ["user_id"], unique=False)
    op.create_index("ix_user_roles_role_id", "user_roles", ["role_id"], unique=False)


def downgrade():
    for table in (
        "user_roles",
        "roles",
        "users",
        "app_configs",
        "register_statuses",
        "sale_details",
        "sales",
        "inventory_details",
        "inventories",
        "monthly_stocks",
        "stocks",
        "counters",
        "sequences",
        "rejection_details",
        "delivery_details",
        "purchase_details",
        "rejections",
        "deliveries",
        "purchases",
        "shop_product_prices",
        "products",
        "suppliers",
        "shops",
    ):
        op.drop_table(table)
