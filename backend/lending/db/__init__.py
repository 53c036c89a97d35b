# Database package: engine/session lifecycle, ORM models and demo seeding
