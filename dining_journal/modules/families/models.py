from dining_journal.config.family_roles import OWNER, ADMIN, MEMBER

# Supabase tables: families, family_members
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

families:
- id: uuid (primary key)
- name: text (not null)
- invite_code: text (not null, unique) - upper-case, issued by the API
- created_by: uuid (foreign key to auth.users.id, not null)
- created_at: timestamp (default: now())
- updated_at: timestamp (default: now())

family_members:
- id: uuid (primary key)
- family_id: uuid (foreign key to families.id on delete cascade, not null)
- user_id: uuid (foreign key to auth.users.id, not null)
- role: text (not null, default: 'member') - values: owner, admin, member
- nickname: text (nullable)
- joined_at: timestamp (default: now())
- unique constraint on (user_id) - a user belongs to at most one family
- partial unique index on (family_id) where role = 'owner' - one owner per family

Deleting a family cascades to family_members and restaurants
(and from there to visits, dishes and visit_attendees).
"""

# Member lists show the owner first, then admins, then members
ROLE_LIST_ORDER = {OWNER: 0, ADMIN: 1, MEMBER: 2}
