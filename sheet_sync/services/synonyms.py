"""Bilingual (EN/KO) header aliases keyed by destination column name.

Used by the last matching tier of the column mapper: a sheet header matches
when its lowercased text contains one of the aliases (lowercased). Keys are
exact destination column names.
"""

COLUMN_SYNONYMS: dict[str, tuple[str, ...]] = {
    # reservations / tours / customers
    "id": ("예약번호", "ID", "아이디"),
    "name": ("고객명", "이름", "Name"),
    "customer_name": ("고객명", "이름", "Name"),
    "email": ("이메일", "Email", "메일"),
    "customer_email": ("이메일", "Email", "메일"),
    "phone": ("전화번호", "Phone", "연락처"),
    "customer_phone": ("전화번호", "Phone", "연락처"),
    "adults": ("성인수", "성인", "Adults"),
    "child": ("아동수", "아동", "Child"),
    "infant": ("유아수", "유아", "Infant"),
    "total_people": ("총인원", "인원", "Total"),
    "tour_date": ("투어날짜", "날짜", "Date"),
    "tour_time": ("투어시간", "시간", "Time"),
    "product_id": ("상품ID", "상품", "Product"),
    "tour_id": ("투어ID", "투어", "Tour"),
    "pickup_hotel": ("픽업호텔", "호텔", "Hotel"),
    "pickup_time": ("픽업시간", "픽업", "Pickup"),
    "channel_id": ("채널", "Channel"),
    "tour_status": ("상태", "Status"),
    "notes": ("비고", "메모", "Notes"),
    "tour_note": ("비고", "메모", "Notes"),
    "event_note": ("비고", "메모", "Notes"),
    "is_private_tour": ("개인투어", "Private"),
    "tour_guide_id": ("가이드", "Guide"),
    "guide_id": ("가이드", "Guide"),
    "assistant_id": ("어시스턴트", "Assistant"),
    "vehicle_id": ("차량", "Vehicle"),
    "tour_car_id": ("차량", "Vehicle"),
    "price": ("가격", "Price"),
    "guide_fee": ("가이드비", "Guide Fee"),
    "assistant_fee": ("어시스턴트비", "Assistant Fee"),
    "created_at": ("생성일", "Created"),
    "updated_at": ("수정일", "Updated"),
    # vehicles
    "vehicle_number": ("차량번호", "Vehicle Number", "차량 번호"),
    "vin": ("VIN", "차대번호", "차대 번호"),
    "vehicle_type": ("차량종류", "Vehicle Type", "차량 종류", "타입"),
    "capacity": ("정원", "Capacity", "수용인원", "수용 인원"),
    "year": ("연식", "Year", "연도"),
    "mileage_at_purchase": ("구매시주행거리", "Purchase Mileage", "구매시 주행거리"),
    "purchase_amount": ("구매금액", "Purchase Amount", "구매 금액", "가격"),
    "purchase_date": ("구매일", "Purchase Date", "구매 날짜"),
    "memo": ("메모", "Memo", "비고", "Notes"),
    "engine_oil_change_cycle": ("엔진오일교환주기", "Oil Change Cycle", "엔진오일 교환주기"),
    "current_mileage": ("현재주행거리", "Current Mileage", "현재 주행거리"),
    "recent_engine_oil_change_mileage": (
        "최근엔진오일교환주행거리",
        "Recent Oil Change Mileage",
        "최근 엔진오일 교환 주행거리",
    ),
    "vehicle_status": ("차량상태", "Vehicle Status", "차량 상태", "상태"),
    "front_tire_size": ("앞타이어사이즈", "Front Tire Size", "앞 타이어 사이즈"),
    "rear_tire_size": ("뒤타이어사이즈", "Rear Tire Size", "뒤 타이어 사이즈"),
    "windshield_wiper_size": ("와이퍼사이즈", "Wiper Size", "와이퍼 사이즈"),
    "headlight_model": ("헤드라이트모델", "Headlight Model", "헤드라이트 모델"),
    "headlight_model_name": ("헤드라이트모델명", "Headlight Model Name", "헤드라이트 모델명"),
    "is_installment": ("할부여부", "Installment", "할부 여부"),
    "installment_amount": ("할부금액", "Installment Amount", "할부 금액"),
    "interest_rate": ("이자율", "Interest Rate"),
    "monthly_payment": ("월납입금", "Monthly Payment", "월 납입금"),
    "additional_payment": ("추가납입금", "Additional Payment", "추가 납입금"),
    "payment_due_date": ("납입일", "Payment Due Date", "납입 날짜"),
    "installment_start_date": ("할부시작일", "Installment Start Date", "할부 시작일"),
    # off_schedules
    "team_email": ("팀이메일", "Team Email", "이메일", "Email"),
    "off_date": ("휴가날짜", "Off Date", "휴가 날짜", "날짜", "Date"),
    "reason": ("사유", "Reason", "휴가사유", "휴가 사유"),
    "status": ("상태", "Status"),
    "approved_by": ("승인자", "Approved By", "승인한 사람"),
    "approved_at": ("승인일시", "Approved At", "승인 날짜", "승인 시간"),
    # payment_records
    "reservation_id": ("예약번호", "Reservation ID", "예약 ID", "예약아이디"),
    "payment_status": ("결제상태", "Payment Status", "결제 상태", "상태"),
    "amount": ("금액", "Amount", "결제금액", "결제 금액"),
    "payment_method": ("결제방법", "Payment Method", "결제 방법", "방법"),
    "note": ("메모", "Note", "비고", "Notes"),
    "image_file_url": ("이미지파일", "Image File", "이미지 파일", "파일"),
    "submit_on": ("제출일시", "Submit On", "제출 날짜", "제출 시간"),
    "submit_by": ("제출자", "Submit By", "제출한 사람"),
    "confirmed_on": ("확인일시", "Confirmed On", "확인 날짜", "확인 시간"),
    "confirmed_by": ("확인자", "Confirmed By", "확인한 사람"),
    "amount_krw": ("원화금액", "Amount KRW", "원화 금액", "KRW"),
}
