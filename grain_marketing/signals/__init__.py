"""
Signal scoring and lifecycle.

Modules
-------
adjustments  Fundamental and seasonal threshold / size adjustments.
thresholds   Default thresholds, risk scaling, personalization blending.
sizing       Recommended bushels for new-crop positions and old-crop stock.
crop_year    New-crop / old-crop classification of a contract month.
evaluation   ``EvaluationInput`` shared by every evaluator.
evaluators   Cash, old-crop, basis, HTA, call-option and accumulator evaluators.
news         Trade-policy and breaking-news evaluators.
engine       Per-business pass over every enabled commodity and instrument.
lifecycle    Dedup-upsert, expiry sweep and user transitions.
learning     Personalized thresholds and risk score from sale history.
"""
