"""Recommendation engine for CRMRec.

This module contains the co-occurrence matrix builder, the individual
recommendation strategies, the customer segmentation engine and the hybrid
orchestrator that combines them into labeled recommendation buckets.
"""
