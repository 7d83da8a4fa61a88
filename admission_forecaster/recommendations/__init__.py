"""
Recommendation engine: turns a student's grades and the university catalog
into admission probabilities, tiers and ranked, capped candidate lists.

Modules
-------
aggregator : raw grades → StudentProfile (weighted GPA, exam average) and
             per-subject summaries.
scorer     : score_probability() / explain_probability(), pure heuristic.
tiers      : classify_tier() and tier ordering.
history    : group_history(), the last N years per department.
ranker     : score_catalog() → sort → cap / partition into 가·나·다 windows.
reporter   : CSV and JSON export of a RecommendationResult.
"""
