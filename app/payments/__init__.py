"""Payment gateway integration"""

from app.payments.gateway import PhonePeGateway, get_gateway

__all__ = ["PhonePeGateway", "get_gateway"]
