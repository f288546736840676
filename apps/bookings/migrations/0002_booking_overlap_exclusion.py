"""Database-level guard against overlapping occupying bookings.

Only PostgreSQL supports exclusion constraints; other backends rely on the
row lock taken by the availability guard.
"""

from django.db import migrations

CONSTRAINT_NAME = "booking_no_overlap_per_listing"

OCCUPYING = "('pending_payment', 'confirmed', 'paid', 'active')"


def add_exclusion_constraint(apps, schema_editor):
    if schema_editor.connection.vendor != "postgresql":
        return
    schema_editor.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
    schema_editor.execute(
        f"""
        ALTER TABLE bookings_booking
        ADD CONSTRAINT {CONSTRAINT_NAME}
        EXCLUDE USING gist (
            listing_id WITH =,
            daterange(start_date, end_date, '[)') WITH &&
        )
        WHERE (status IN {OCCUPYING})
        """
    )


def drop_exclusion_constraint(apps, schema_editor):
    if schema_editor.connection.vendor != "postgresql":
        return
    schema_editor.execute(
        f"ALTER TABLE bookings_booking DROP CONSTRAINT IF EXISTS {CONSTRAINT_NAME}"
    )


class Migration(migrations.Migration):

    dependencies = [
        ("bookings", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(add_exclusion_constraint, drop_exclusion_constraint),
    ]
