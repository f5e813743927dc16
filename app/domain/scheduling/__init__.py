"""
Scheduling Domain

Appointment availability, booking creation and the appointment status lifecycle.

Structure:
```
app/domain/scheduling/
├── __init__.py
├── errors.py                # Domain exceptions mapped to HTTP responses
├── schemas.py               # Schedule, booking and status schemas
├── time_calculator.py       # Time parsing and interval arithmetic
├── repository.py            # Appointment database queries
├── availability_service.py  # Slot computation
├── state_machine.py         # Status transitions and cancellation attribution
├── integration_service.py   # Timeout-bounded Google Calendar sync
├── booking_service.py       # Booking creation with collision guard
├── status_service.py        # Accept, decline, complete, cancel
└── router.py                # Scheduling endpoints
```
"""
