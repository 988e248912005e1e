from .mvn import SufficientStats, log_prob, make_pdf, sample_moments, weighted_stats


__all__ = [
    'SufficientStats',
    'log_prob',
    'make_pdf',
    'sample_moments',
    'weighted_stats',
]
