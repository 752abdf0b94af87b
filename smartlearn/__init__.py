"""SmartLearn transactional core: enrollments, payments, certificates, deliveries."""
