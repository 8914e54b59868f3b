"""
Table definition for the document preview record.

Only the columns the worker writes are mapped; the rest of the document
schema belongs to the web applications.
"""

import sqlalchemy as sa


def document_table(name: str = "plano_documento", metadata: sa.MetaData | None = None) -> sa.Table:
    """
    Build the table holding preview status columns.

    Args:
        name: Table name of the document record
        metadata: MetaData to attach the table to (fresh one if omitted)

    Returns:
        sa.Table: Table with the preview columns
    """
    return sa.Table(
        name,
        metadata if metadata is not None else sa.MetaData(),
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("preview_key", sa.String(500), nullable=True),
        sa.Column("preview_url", sa.String(1000), nullable=True),
        sa.Column("preview_mime_type", sa.String(100), nullable=True),
        sa.Column("preview_status", sa.String(20), nullable=True),
        sa.Column("preview_error", sa.Text(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
