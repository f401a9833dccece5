"""exam-drill: timed quiz sessions over a bucketed question pool."""
