"""
RFM (Recency, Frequency, Monetary) scoring and segmentation of customers.

Scores are relative: quintile cut points are recomputed from the customer
population on every call. Segments come from ``SEGMENT_RULES``, evaluated
top to bottom, first match wins.
"""
import logging
import math

import pandas as pd

from transformation.records import RFMScore

logger = logging.getLogger(__name__)

# Score given to every dimension when there are too few customers to rank
FALLBACK_SCORE = 3
MIN_RANKABLE_CUSTOMERS = 2

OTHERS = 'Others'

# (segment, (r_min, r_max), (f_min, f_max), (m_min, m_max)), bounds inclusive
SEGMENT_RULES = [
    ('Champions', (4, 5), (4, 5), (4, 5)),
    ('Loyal Customers', (3, 5), (4, 5), (3, 5)),
    ('Potential Loyalists', (4, 5), (2, 3), (2, 3)),
    ('New Customers', (4, 5), (1, 1), (1, 5)),
    ('At Risk', (2, 3), (3, 5), (3, 5)),
    ("Can't Lose Them", (1, 2), (4, 5), (4, 5)),
    ('Hibernating', (1, 2), (1, 2), (2, 3)),
    ('Lost', (1, 1), (1, 1), (1, 1)),
]

SEGMENT_INFO = {
    'Champions': {
        'name': 'Campeones',
        'description': 'Mejores clientes: compran con frecuencia, recientemente y gastan más',
        'priority': 1
    },
    'Loyal Customers': {
        'name': 'Leales',
        'description': 'Compradores regulares con buen gasto promedio',
        'priority': 2
    },
    'Potential Loyalists': {
        'name': 'Potenciales',
        'description': 'Clientes recientes con potencial de volverse leales',
        'priority': 3
    },
    'New Customers': {
        'name': 'Nuevos',
        'description': 'Acaban de realizar su primera compra',
        'priority': 4
    },
    'At Risk': {
        'name': 'En Riesgo',
        'description': 'Clientes valiosos que están perdiendo actividad',
        'priority': 5
    },
    "Can't Lose Them": {
        'name': 'Críticos',
        'description': 'Alto valor pero sin compras recientes',
        'priority': 6
    },
    'Hibernating': {
        'name': 'Inactivos',
        'description': 'Baja actividad, pueden estar perdidos',
        'priority': 7
    },
    'Lost': {
        'name': 'Perdidos',
        'description': 'No han comprado en mucho tiempo',
        'priority': 8
    },
    OTHERS: {
        'name': 'Otros',
        'description': 'Patrones de compra variados',
        'priority': 9
    },
}


def _is_delivery_only(order, delivery_sku):
    return bool(order.items) and all(item.sku == delivery_sku for item in order.items)


def calculate_rfm(customers, reference_date=None, delivery_sku=None):
    """
    Raw recency, frequency and monetary values per customer.

    Recency is None for customers without a valid order date. When
    ``delivery_sku`` is given, orders made only of the delivery line do not
    count towards frequency.
    """
    reference_date = pd.Timestamp(reference_date) if reference_date is not None else pd.Timestamp.now()

    results = []
    for customer in customers:
        dates = [order.order_date for order in customer.orders if order.has_valid_date]
        recency = (reference_date - max(dates)).days if dates else None

        orders = customer.orders
        if delivery_sku is not None:
            orders = [order for order in orders if not _is_delivery_only(order, delivery_sku)]

        results.append(RFMScore(
            customer=customer,
            recency_days=recency,
            frequency=len(orders),
            monetary=sum(order.total_amount or 0.0 for order in customer.orders)
        ))
    return results


def quintile_cut_points(values):
    """Values at the 20th, 40th, 60th and 80th percentile positions of the sorted list."""
    ordered = sorted(values)
    return [ordered[math.floor(len(ordered) * share)] for share in (0.2, 0.4, 0.6, 0.8)]


def _ascending_score(value, cuts):
    if value >= cuts[3]:
        return 5
    if value >= cuts[2]:
        return 4
    if value >= cuts[1]:
        return 3
    if value >= cuts[0]:
        return 2
    return 1


def _recency_score(value, cuts):
    if value is None or cuts is None:
        return 1
    if value <= cuts[0]:
        return 5
    if value <= cuts[1]:
        return 4
    if value <= cuts[2]:
        return 3
    if value <= cuts[3]:
        return 2
    return 1


def score_rfm(scores):
    """Assign 1-5 scores from the population's quintiles; recency is scored inversely."""
    if len(scores) < MIN_RANKABLE_CUSTOMERS:
        for score in scores:
            score.recency_score = score.frequency_score = score.monetary_score = FALLBACK_SCORE
        return scores

    recencies = [score.recency_days for score in scores if score.recency_days is not None]
    recency_cuts = quintile_cut_points(recencies) if recencies else None
    frequency_cuts = quintile_cut_points([score.frequency for score in scores])
    monetary_cuts = quintile_cut_points([score.monetary for score in scores])

    for score in scores:
        score.recency_score = _recency_score(score.recency_days, recency_cuts)
        score.frequency_score = _ascending_score(score.frequency, frequency_cuts)
        score.monetary_score = _ascending_score(score.monetary, monetary_cuts)
    return scores


def classify_segment(recency_score, frequency_score, monetary_score):
    """Segment label for a score triple."""
    for segment, r_range, f_range, m_range in SEGMENT_RULES:
        if (r_range[0] <= recency_score <= r_range[1]
                and f_range[0] <= frequency_score <= f_range[1]
                and m_range[0] <= monetary_score <= m_range[1]):
            return segment
    return OTHERS


def segment_customers(scores):
    for score in scores:
        score.segment = classify_segment(score.recency_score, score.frequency_score, score.monetary_score)
    return scores


def get_segment_info(segment):
    return SEGMENT_INFO.get(segment, SEGMENT_INFO[OTHERS])


def segment_stats(scores):
    """
    Aggregate statistics per segment.

    Averages are rounded to whole numbers; customers without a recency are
    left out of the recency average.
    """
    if not scores:
        return {}

    df = pd.DataFrame({
        'segment': [score.segment for score in scores],
        'recency': [score.recency_days for score in scores],
        'frequency': [score.frequency for score in scores],
        'monetary': [score.monetary for score in scores]
    })
    df['recency'] = pd.to_numeric(df['recency'], errors='coerce')

    grouped = df.groupby('segment', sort=False).agg(
        count=('segment', 'size'),
        total_revenue=('monetary', 'sum'),
        avg_recency=('recency', 'mean'),
        avg_frequency=('frequency', 'mean'),
        avg_monetary=('monetary', 'mean')
    )

    stats = {}
    for segment, row in grouped.iterrows():
        stats[segment] = {
            'count': int(row['count']),
            'total_revenue': float(row['total_revenue']),
            'avg_recency': None if pd.isna(row['avg_recency']) else int(round(row['avg_recency'])),
            'avg_frequency': int(round(row['avg_frequency'])),
            'avg_monetary': int(round(row['avg_monetary'])),
            'percentage': round(row['count'] / len(scores) * 100, 1),
            'info': get_segment_info(segment)
        }
    return stats


def perform_rfm_analysis(customers, reference_date=None, delivery_sku=None):
    """
    Complete RFM analysis: values, scores, segments and per-segment statistics.

    Returns:
        dict: 'scores', 'stats', 'total_customers', 'total_segments'
    """
    logger.info(f"Running RFM analysis for {len(customers)} customers")

    scores = calculate_rfm(customers, reference_date, delivery_sku)
    scores = segment_customers(score_rfm(scores))
    stats = segment_stats(scores)

    logger.info(f"RFM analysis produced {len(stats)} segments")
    return {
        'scores': scores,
        'stats': stats,
        'total_customers': len(scores),
        'total_segments': len(stats)
    }
