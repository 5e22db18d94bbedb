"""
Notificaciones del sistema (alta de facturas, resultado de cargas masivas).
"""
