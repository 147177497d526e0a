"""Monitor continuo de glucosa simulado: alertas y métricas derivadas."""
