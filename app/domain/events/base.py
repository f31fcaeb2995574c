"""
Domain Event Base Class
"""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict


@dataclass
class DomainEvent:
    """Domain Event 기본 클래스"""
    timestamp: datetime

    def to_dict(self) -> Dict:
        """Kafka 발행용 dict (timestamp는 ISO 문자열, __event_type__으로 이벤트 구분)"""
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat()
        data['__event_type__'] = self.__class__.__name__
        return data
