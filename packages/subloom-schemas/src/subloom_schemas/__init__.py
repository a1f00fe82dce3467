"""subloom-schemas: shared pydantic models for subloom."""
