"""Pipeline stages: grouping, combining, SKU matching, backups and labels."""
