"""Transactional operations over evaluations, groups and their documents."""
