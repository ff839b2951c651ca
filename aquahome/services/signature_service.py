import hashlib
import hmac


class SignatureVerifier:
    @staticmethod
    def compute(order_id, payment_id, secret):
        base = f"{order_id}|{payment_id}".encode()
        return hmac.new(secret.encode(), base, hashlib.sha256).hexdigest()

    @staticmethod
    def verify(order_id, payment_id, secret, provided_signature):
        if not (order_id and payment_id and secret and provided_signature):
            return False
        expected = SignatureVerifier.compute(order_id, payment_id, secret)
        return hmac.compare_digest(expected.encode(), str(provided_signature).encode())
