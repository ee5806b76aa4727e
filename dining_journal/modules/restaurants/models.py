# Supabase tables: restaurants
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

restaurants:
- id: uuid (primary key)
- family_id: uuid (foreign key to families.id on delete cascade, not null)
- name: text (not null)
- cuisine: text (nullable)
- address: text (nullable)
- website: text (nullable)
- notes: text (nullable)
- created_by: uuid (foreign key to auth.users.id, not null)
- created_at: timestamp (default: now())
- updated_at: timestamp (default: now())

visit_count, avg_rating, avg_price and last_visit are computed on read
from the restaurant's visits and never stored.
"""

CUISINE_OPTIONS = [
    "Chinese", "Japanese", "Korean", "Thai", "Vietnamese",
    "Indian", "Italian", "French", "Mediterranean", "Mexican",
    "American", "Seafood", "Steakhouse", "Vegetarian", "Cafe",
    "Fast Food", "Dessert", "Other"
]
