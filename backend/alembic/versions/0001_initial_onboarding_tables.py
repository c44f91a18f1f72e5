"""Initial onboarding tables and the store public id sequence.

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa

approval_status = sa.Enum(
    "DRAFT", "SUBMITTED", "UNDER_VERIFICATION", "APPROVED", "REJECTED",
    name="approvalstatus",
)
store_status = sa.Enum("ACTIVE", "INACTIVE", name="storestatus")
store_type = sa.Enum(
    "RESTAURANT", "CAFE", "BAKERY", "CLOUD_KITCHEN", "GROCERY", "PHARMA",
    "STATIONERY", "ELECTRONICS_ECOMMERCE", "OTHERS",
    name="storetype",
)
registration_status = sa.Enum("IN_PROGRESS", "COMPLETED", name="registrationstatus")
payout_method = sa.Enum("BANK", "UPI", name="payoutmethod")
media_scope = sa.Enum("MENU_REFERENCE", name="mediascope")
media_source = sa.Enum("SHEET", "IMAGE", name="mediasource")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Public ids continue from GMMC1001
    op.execute("CREATE SEQUENCE IF NOT EXISTS store_public_id_seq START WITH 1001")

    op.create_table(
        "merchant_stores",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("store_id", sa.String(32), nullable=False, unique=True),
        sa.Column("owner_id", sa.String(36), nullable=False),
        sa.Column("store_name", sa.String(255), nullable=False),
        sa.Column("store_display_name", sa.String(255)),
        sa.Column("store_description", sa.Text()),
        sa.Column("store_type", store_type),
        sa.Column("custom_store_type", sa.String(100)),
        sa.Column("store_email", sa.String(255)),
        sa.Column("store_phones", sa.JSON()),
        sa.Column("full_address", sa.Text()),
        sa.Column("landmark", sa.String(255)),
        sa.Column("city", sa.String(100)),
        sa.Column("state", sa.String(100)),
        sa.Column("postal_code", sa.String(20)),
        sa.Column("country", sa.String(10)),
        sa.Column("latitude", sa.Float()),
        sa.Column("longitude", sa.Float()),
        sa.Column("cuisine_types", sa.JSON()),
        sa.Column("food_categories", sa.JSON()),
        sa.Column("avg_preparation_time_minutes", sa.Integer()),
        sa.Column("min_order_amount", sa.Float()),
        sa.Column("delivery_radius_km", sa.Float()),
        sa.Column("is_pure_veg", sa.Boolean()),
        sa.Column("accepts_online_payment", sa.Boolean()),
        sa.Column("accepts_cash", sa.Boolean()),
        sa.Column("logo_url", sa.Text()),
        sa.Column("banner_url", sa.Text()),
        sa.Column("gallery_images", sa.JSON()),
        sa.Column("approval_status", approval_status),
        sa.Column("status", store_status),
        sa.Column("operational_status", sa.String(20)),
        sa.Column("is_active", sa.Boolean()),
        sa.Column("is_accepting_orders", sa.Boolean()),
        sa.Column("is_available", sa.Boolean()),
        sa.Column("onboarding_completed", sa.Boolean()),
        sa.Column("current_onboarding_step", sa.Integer()),
        *_timestamps(),
    )
    op.create_index("ix_merchant_stores_store_id", "merchant_stores", ["store_id"])
    op.create_index("ix_merchant_stores_owner_id", "merchant_stores", ["owner_id"])
    op.create_index("ix_merchant_stores_approval_status", "merchant_stores", ["approval_status"])

    op.create_table(
        "merchant_store_registration_progress",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("owner_id", sa.String(36), nullable=False),
        sa.Column("store_id", sa.String(36)),
        sa.Column("current_step", sa.Integer()),
        sa.Column("total_steps", sa.Integer()),
        *[sa.Column(f"step_{i}_completed", sa.Boolean()) for i in range(1, 7)],
        sa.Column("completed_steps", sa.Integer()),
        sa.Column("form_data", sa.JSON()),
        sa.Column("registration_status", registration_status),
        *_timestamps(),
    )
    op.create_index(
        "ix_merchant_store_registration_progress_owner_id",
        "merchant_store_registration_progress",
        ["owner_id"],
    )

    doc_columns = []
    for prefix, number_len in (
        ("pan", 20), ("aadhaar", 20), ("gst", 20), ("fssai", 20),
        ("drug_license", 50), ("pharmacist_certificate", 50),
    ):
        doc_columns += [
            sa.Column(f"{prefix}_document_number", sa.String(number_len)),
            sa.Column(f"{prefix}_document_url", sa.Text()),
            sa.Column(f"{prefix}_document_name", sa.String(255)),
        ]
    op.create_table(
        "merchant_store_documents",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("store_id", sa.String(36), sa.ForeignKey("merchant_stores.id"), nullable=False, unique=True),
        *doc_columns,
        sa.Column("pan_holder_name", sa.String(255)),
        sa.Column("aadhaar_back_document_url", sa.Text()),
        sa.Column("aadhaar_holder_name", sa.String(255)),
        sa.Column("fssai_expiry_date", sa.Date()),
        sa.Column("drug_license_expiry_date", sa.Date()),
        sa.Column("pharmacist_certificate_expiry_date", sa.Date()),
        sa.Column("pharmacy_council_registration_document_url", sa.Text()),
        sa.Column("pharmacy_council_registration_document_name", sa.String(255)),
        sa.Column("other_document_number", sa.String(100)),
        sa.Column("other_document_url", sa.Text()),
        sa.Column("other_document_name", sa.String(255)),
        sa.Column("other_document_type", sa.String(100)),
        sa.Column("other_expiry_date", sa.Date()),
        *_timestamps(),
    )

    op.create_table(
        "merchant_store_payout_methods",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("store_id", sa.String(36), sa.ForeignKey("merchant_stores.id"), nullable=False),
        sa.Column("payout_method", payout_method, nullable=False),
        sa.Column("account_holder_name", sa.String(255), nullable=False),
        sa.Column("account_number", sa.String(50), nullable=False),
        sa.Column("ifsc_code", sa.String(20), nullable=False),
        sa.Column("bank_name", sa.String(255), nullable=False),
        sa.Column("branch_name", sa.String(255)),
        sa.Column("account_type", sa.String(50)),
        sa.Column("bank_proof_type", sa.String(50)),
        sa.Column("bank_proof_file_url", sa.Text()),
        sa.Column("upi_id", sa.String(100)),
        sa.Column("upi_qr_screenshot_url", sa.Text()),
        sa.Column("is_primary", sa.Boolean()),
        sa.Column("is_active", sa.Boolean()),
        *_timestamps(),
    )
    op.create_index(
        "ix_merchant_store_payout_methods_store_id", "merchant_store_payout_methods", ["store_id"]
    )

    op.create_table(
        "merchant_store_media_files",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("store_id", sa.String(36), sa.ForeignKey("merchant_stores.id"), nullable=False),
        sa.Column("media_scope", media_scope, nullable=False),
        sa.Column("source", media_source, nullable=False),
        sa.Column("public_url", sa.Text(), nullable=False),
        sa.Column("blob_key", sa.Text()),
        sa.Column("mime_type", sa.String(100)),
        sa.Column("is_active", sa.Boolean()),
        *_timestamps(),
    )
    op.create_index(
        "ix_merchant_store_media_files_store_id", "merchant_store_media_files", ["store_id"]
    )

    op.create_table(
        "merchant_store_operating_hours",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("store_id", sa.String(36), sa.ForeignKey("merchant_stores.id"), nullable=False, unique=True),
        sa.Column("schedule", sa.JSON()),
        sa.Column("closed_days", sa.JSON()),
        sa.Column("same_for_all_days", sa.Boolean()),
        sa.Column("is_24_hours", sa.Boolean()),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("merchant_store_operating_hours")
    op.drop_table("merchant_store_media_files")
    op.drop_table("merchant_store_payout_methods")
    op.drop_table("merchant_store_documents")
    op.drop_table("merchant_store_registration_progress")
    op.drop_table("merchant_stores")
    for enum in (
        media_source, media_scope, payout_method, registration_status,
        store_type, store_status, approval_status,
    ):
        enum.drop(op.get_bind(), checkfirst=True)
    op.execute("DROP SEQUENCE IF EXISTS store_public_id_seq")
