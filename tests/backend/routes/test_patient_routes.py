from datetime import date, time

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from backend.auth.dependencies import SessionContext
from backend.models.consultation import ConsultationRecord
from backend.models.patient import Patient
from backend.models.patient_note import PatientNote
from backend.routes.patient_routes import (
    CreateConsultationRequest,
    CreateNoteRequest,
    CreatePatientRequest,
    add_patient_note,
    create_patient,
    delete_patient_note,
    find_patient_by_rut,
    get_patient,
    list_consultation_history,
    list_patient_notes,
    record_consultation,
)


def new_patient_request(rut: str = '9876543-2') -> CreatePatientRequest:
    return CreatePatientRequest(
        rut=rut,
        first_name=' Luis ',
        last_name='Soto',
        phone='  ',
        email='luis@example.cl',
        date_of_birth=date(1990, 4, 12),
    )


def test_find_patient_by_rut_returns_patient(clinic_db, patient, receptionist_session) -> None:
    found = find_patient_by_rut(rut='12345678-5', db=clinic_db, current_user=receptionist_session)

    assert found.id == patient.id
    assert found.first_name == 'Ana'


def test_find_patient_by_rut_returns_not_found(clinic_db, patient, receptionist_session) -> None:
    with pytest.raises(HTTPException) as exception_info:
        find_patient_by_rut(rut='11111111-1', db=clinic_db, current_user=receptionist_session)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Patient not found.'


def test_find_patient_by_rut_matches_exactly_as_stored(clinic_db, patient, receptionist_session) -> None:
    with pytest.raises(HTTPException) as exception_info:
        find_patient_by_rut(rut='12.345.678-5', db=clinic_db, current_user=receptionist_session)

    assert exception_info.value.status_code == 404


def test_create_patient_stores_rut_as_given(clinic_db, receptionist_session) -> None:
    created = create_patient(data=new_patient_request('9.876.543-2'), db=clinic_db, current_user=receptionist_session)

    stored = clinic_db.query(Patient).filter(Patient.id == created.id).one()
    assert stored.rut == '9.876.543-2'
    assert stored.first_name == 'Luis'
    assert stored.phone is None
    assert stored.date_of_birth == date(1990, 4, 12)
    assert find_patient_by_rut(rut='9.876.543-2', db=clinic_db, current_user=receptionist_session).id == created.id


def test_create_patient_rejects_duplicate_rut(clinic_db, patient, receptionist_session) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_patient(data=new_patient_request('12345678-5'), db=clinic_db, current_user=receptionist_session)

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail == 'A patient with this RUT already exists.'
    assert clinic_db.query(Patient).count() == 1


def test_create_patient_request_requires_names() -> None:
    with pytest.raises(ValidationError):
        CreatePatientRequest(rut='9876543-2', first_name='  ', last_name='Soto')


def test_get_patient_returns_not_found_for_unknown_id(clinic_db, receptionist_session) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_patient(patient_id=404, db=clinic_db, current_user=receptionist_session)

    assert exception_info.value.status_code == 404


def test_doctor_adds_and_lists_notes_newest_first(clinic_db, doctor, patient, doctor_session) -> None:
    first = add_patient_note(
        patient_id=patient.id,
        data=CreateNoteRequest(note='  Alergia a penicilina. '),
        db=clinic_db,
        current_user=doctor_session,
    )
    second = add_patient_note(
        patient_id=patient.id,
        data=CreateNoteRequest(note='Control en dos semanas.'),
        db=clinic_db,
        current_user=doctor_session,
    )

    notes = list_patient_notes(patient_id=patient.id, db=clinic_db, current_user=doctor_session)

    assert [note.id for note in notes] == [second.id, first.id]
    assert first.note == 'Alergia a penicilina.'
    assert first.doctor_id == doctor.id


def test_notes_are_restricted_to_doctors(clinic_db, patient, receptionist_session) -> None:
    with pytest.raises(HTTPException) as exception_info:
        list_patient_notes(patient_id=patient.id, db=clinic_db, current_user=receptionist_session)

    assert exception_info.value.status_code == 403
    assert exception_info.value.detail == 'Only doctors can read clinical notes.'


def test_note_request_rejects_blank_note() -> None:
    with pytest.raises(ValidationError):
        CreateNoteRequest(note='   ')


def test_author_deletes_note(clinic_db, doctor, patient, doctor_session) -> None:
    note = add_patient_note(
        patient_id=patient.id,
        data=CreateNoteRequest(note='Borrar'),
        db=clinic_db,
        current_user=doctor_session,
    )

    delete_patient_note(patient_id=patient.id, note_id=note.id, db=clinic_db, current_user=doctor_session)

    assert clinic_db.query(PatientNote).count() == 0


def test_other_doctor_cannot_delete_note(clinic_db, doctor, other_doctor, patient, doctor_session) -> None:
    note = add_patient_note(
        patient_id=patient.id,
        data=CreateNoteRequest(note='Privada'),
        db=clinic_db,
        current_user=doctor_session,
    )

    with pytest.raises(HTTPException) as exception_info:
        delete_patient_note(
            patient_id=patient.id,
            note_id=note.id,
            db=clinic_db,
            current_user=SessionContext.from_user(other_doctor),
        )

    assert exception_info.value.status_code == 403
    assert clinic_db.query(PatientNote).count() == 1


def test_delete_unknown_note_returns_not_found(clinic_db, patient, doctor_session) -> None:
    with pytest.raises(HTTPException) as exception_info:
        delete_patient_note(patient_id=patient.id, note_id=99, db=clinic_db, current_user=doctor_session)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Note not found.'


def test_consultation_history_is_newest_first(clinic_db, doctor, patient, doctor_session, administrator_session) -> None:
    for consultation_date, consultation_time in [
        (date(2026, 1, 5), time(9, 0)),
        (date(2026, 1, 12), time(8, 30)),
        (date(2026, 1, 12), time(14, 0)),
    ]:
        record_consultation(
            patient_id=patient.id,
            data=CreateConsultationRequest(
                consultation_date=consultation_date,
                consultation_time=consultation_time,
                diagnosis='Resfrio',
            ),
            db=clinic_db,
            current_user=doctor_session,
        )

    history = list_consultation_history(patient_id=patient.id, db=clinic_db, current_user=administrator_session)

    assert [(record.consultation_date, record.consultation_time) for record in history] == [
        (date(2026, 1, 12), time(14, 0)),
        (date(2026, 1, 12), time(8, 30)),
        (date(2026, 1, 5), time(9, 0)),
    ]
    assert {record.doctor_id for record in history} == {doctor.id}


def test_receptionist_cannot_read_consultation_history(clinic_db, patient, receptionist_session) -> None:
    with pytest.raises(HTTPException) as exception_info:
        list_consultation_history(patient_id=patient.id, db=clinic_db, current_user=receptionist_session)

    assert exception_info.value.status_code == 403


def test_record_consultation_requires_doctor(clinic_db, patient, administrator_session) -> None:
    with pytest.raises(HTTPException) as exception_info:
        record_consultation(
            patient_id=patient.id,
            data=CreateConsultationRequest(consultation_date=date(2026, 1, 5), consultation_time='09:00'),
            db=clinic_db,
            current_user=administrator_session,
        )

    assert exception_info.value.status_code == 403
    assert clinic_db.query(ConsultationRecord).count() == 0


def test_record_consultation_for_unknown_patient_returns_not_found(clinic_db, doctor_session) -> None:
    with pytest.raises(HTTPException) as exception_info:
        record_consultation(
            patient_id=404,
            data=CreateConsultationRequest(consultation_date=date(2026, 1, 5), consultation_time='09:00'),
            db=clinic_db,
            current_user=doctor_session,
        )

    assert exception_info.value.status_code == 404
