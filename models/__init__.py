from models.mortgage import MortgageRequest

__all__ = [
    "MortgageRequest",
]
