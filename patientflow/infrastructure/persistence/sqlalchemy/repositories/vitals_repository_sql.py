from typing import Any, Dict, Optional
from sqlmodel import Session, select

from .....db.models import VitalsRecord
from .....application.ports.vitals_repo import VitalsDto, VitalsRepository


class SqlVitalsRepository(VitalsRepository):
    def __init__(self, session: Session):
        self.session = session

    def _to_dto(self, v: VitalsRecord) -> VitalsDto:
        return VitalsDto(
            id=v.id,
            appointment_id=v.appointment_id,
            recorded_by=v.recorded_by,
            recorded_at=v.recorded_at,
            blood_pressure_systolic=v.blood_pressure_systolic,
            blood_pressure_diastolic=v.blood_pressure_diastolic,
            temperature=v.temperature,
            pulse_rate=v.pulse_rate,
            respiratory_rate=v.respiratory_rate,
            oxygen_saturation=v.oxygen_saturation,
            weight=v.weight,
            height=v.height,
            pain_level=v.pain_level,
            symptoms_description=v.symptoms_description,
            nurse_notes=v.nurse_notes,
        )

    def create(self, appointment_id: str, recorded_by: Optional[str], fields: Dict[str, Any]) -> VitalsDto:
        rec = VitalsRecord(appointment_id=appointment_id, recorded_by=recorded_by, **fields)
        self.session.add(rec)
        self.session.commit()
        self.session.refresh(rec)
        return self._to_dto(rec)

    def get_for_appointment(self, appointment_id: str) -> Optional[VitalsDto]:
        v = self.session.exec(select(VitalsRecord).where(VitalsRecord.appointment_id == appointment_id)).first()
        return self._to_dto(v) if v else None
