"""Application services. Import concrete services from their modules."""
