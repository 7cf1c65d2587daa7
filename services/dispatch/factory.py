from typing import Callable, Dict

from libs.sms_gateway import (
    BaseSmsGateway,
    DummySmsGateway,
    SmsUriGateway,
    TwilioSmsGateway,
)


class SmsGatewayFactory:
    def __init__(self) -> None:
        self._builders: Dict[str, Callable[[], BaseSmsGateway]] = {
            "twilio": TwilioSmsGateway,
            "dummy": DummySmsGateway,
            "dev": DummySmsGateway,
            "test": DummySmsGateway,
            "uri": SmsUriGateway,
        }

    def get_gateway(self, mode: str) -> BaseSmsGateway:
        mode = (mode or "").lower()
        if mode not in self._builders:
            raise ValueError(f"Unsupported SMS mode: {mode}")
        return self._builders[mode]()
