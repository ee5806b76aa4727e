# Supabase tables: visits, dishes, visit_attendees
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

visits:
- id: uuid (primary key)
- restaurant_id: uuid (foreign key to restaurants.id on delete cascade, not null)
- family_id: uuid (foreign key to families.id on delete cascade, not null) - copy of the restaurant's family
- date: date (not null)
- overall_rating: smallint (nullable, check 1..5)
- value_for_money: smallint (nullable, check 1..5)
- total_bill: numeric(10, 2) (nullable, check >= 0)
- number_of_people: integer (nullable, check > 0)
- would_recommend: boolean (nullable) - null means "maybe"
- notes: text (nullable)
- created_by: uuid (foreign key to auth.users.id, not null)
- created_at: timestamp (default: now())
- updated_at: timestamp (default: now())

dishes:
- id: uuid (primary key)
- visit_id: uuid (foreign key to visits.id on delete cascade, not null)
- name: text (not null)
- rating: smallint (nullable, check 1..5)
- price: numeric(10, 2) (nullable, check >= 0)
- notes: text (nullable)
- ordered_by: uuid (foreign key to auth.users.id, nullable)
- created_at: timestamp (default: now())

visit_attendees:
- id: uuid (primary key)
- visit_id: uuid (foreign key to visits.id on delete cascade, not null)
- user_id: uuid (foreign key to auth.users.id, not null)
- personal_rating: smallint (nullable, check 1..5)
- personal_notes: text (nullable)
- unique constraint on (visit_id, user_id)

A visit and its dishes/attendees are written by VisitService.record_visit;
PostgREST cannot group the three writes in one transaction, so the service
undoes partial work itself when a later write fails.
"""

# Columns a visit edit may change; also what a failed edit restores
EDITABLE_VISIT_FIELDS = (
    "date", "overall_rating", "value_for_money", "total_bill",
    "number_of_people", "would_recommend", "notes", "updated_at",
)
