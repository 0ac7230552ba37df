__all__ = [
    "BootConfiguration",
    "RubricateContainer",
]


from .rubricate import BootConfiguration, RubricateContainer
